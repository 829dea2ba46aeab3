"""Reading of ``/etc/group`` style group databases."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, TextIO

DEFAULT_GROUP_FILE = "/etc/group"

_GID_RE = re.compile(r"[+-]?[0-9]+")


@dataclass
class Group:
    """One entry of a group database."""

    name: str
    gid: int
    members: list[str] = field(default_factory=list)


class GroupIndex:
    """Lookup of groups by name and by id."""

    def __init__(self) -> None:
        self._by_name: dict[str, Group] = {}
        self._by_gid: dict[int, Group] = {}

    @classmethod
    def from_groups(cls, groups: Iterable[Group]) -> "GroupIndex":
        """Build an index; later entries win on duplicate names or ids."""
        index = cls()
        for group in groups:
            index._by_gid[group.gid] = group
            index._by_name[group.name] = group
        return index

    def by_name(self, name: str) -> Group | None:
        """Return the group called ``name``, or None."""
        return self._by_name.get(name)

    def by_gid(self, gid: int) -> Group | None:
        """Return the group with id ``gid``, or None."""
        return self._by_gid.get(gid)


def parse_groups(stream: TextIO | Iterable[str]) -> list[Group]:
    """Parse group entries of the form ``name:password:gid:members``.

    Lines starting with ``#`` are skipped. A malformed entry or gid raises
    ValueError.
    """
    groups = []
    for raw in stream:
        line = raw[:-1] if raw.endswith("\n") else raw
        if line.endswith("\r"):
            line = line[:-1]
        if line.startswith("#"):
            continue
        parts = line.split(":", 3)
        if len(parts) != 4:
            raise ValueError(f"bad entry: {line!r}")
        name, _, sgid, smembers = parts
        if not _GID_RE.fullmatch(sgid):
            raise ValueError(f"bad gid: {sgid!r}")
        groups.append(Group(name=name, gid=int(sgid), members=smembers.split(",")))
    return groups


def get_group_index(path: str = DEFAULT_GROUP_FILE) -> GroupIndex:
    """Read the group file at ``path`` into an index."""
    with open(path, encoding="utf-8") as handle:
        return GroupIndex.from_groups(parse_groups(handle))


def get_group_name(gid: int, path: str = DEFAULT_GROUP_FILE) -> str:
    """Return the name of the group with id ``gid``.

    Raises LookupError when no entry has that id.
    """
    with open(path, encoding="utf-8") as handle:
        groups = parse_groups(handle)
    for group in groups:
        if group.gid == gid:
            return group.name
    raise LookupError("no group for gid")