"""Computation of the changes between two directory trees."""

from __future__ import annotations

import enum
import logging
import os
import stat
from dataclasses import dataclass
from typing import Callable, Iterator

from .paths import CurrentPath, directory_compare, is_linked, path_walk, same_file

log = logging.getLogger(__name__)


class ChangeKind(enum.IntEnum):
    """The kind of modification a change makes."""

    UNMODIFIED = 0
    ADD = 1
    MODIFY = 2
    DELETE = 3

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Change:
    """A single change between a tree and its base.

    ``info`` is the lstat result of the entry in the changed tree; it is None
    for deletions.
    """

    kind: ChangeKind
    path: str
    info: os.stat_result | None = None


ChangeFunc = Callable[[ChangeKind, str, "os.stat_result | None"], None]


def iter_changes(
    a: str | os.PathLike[str] | None, b: str | os.PathLike[str]
) -> Iterator[Change]:
    """Yield the changes that turn tree ``a`` into tree ``b``, ordered by path.

    With an empty ``a`` every entry of ``b`` is an addition. A removed
    directory produces one deletion for its root only, and a directory
    replaced by a file produces no deletions for its former contents.
    Unchanged files are skipped, except hard-linked ones, which are yielded
    as UNMODIFIED so links can be recreated. File contents are read only when
    both modification times lack a sub-second part.
    """
    b = os.fspath(b)
    if not a:
        log.debug("Using single walk diff for %s", b)
        yield from _add_dir_changes(b)
        return
    a = os.fspath(a)
    log.debug("Using double walk diff for %s from %s", b, a)
    yield from _double_walk_diff(a, b)


def changes(
    a: str | os.PathLike[str] | None,
    b: str | os.PathLike[str],
    change_fn: ChangeFunc,
) -> None:
    """Call ``change_fn(kind, path, info)`` for every change from ``a`` to ``b``.

    An exception raised by ``change_fn`` stops the walk and propagates.
    """
    for change in iter_changes(a, b):
        change_fn(change.kind, change.path, change.info)


def _add_dir_changes(root: str) -> Iterator[Change]:
    os.lstat(root)
    for entry in path_walk(root):
        yield Change(ChangeKind.ADD, entry.path, entry.info)


def _path_change(
    lower: CurrentPath | None, upper: CurrentPath | None
) -> tuple[ChangeKind, str]:
    if lower is None:
        if upper is None:
            raise ValueError("cannot compare nil paths")
        return ChangeKind.ADD, upper.path
    if upper is None:
        return ChangeKind.DELETE, lower.path
    order = directory_compare(lower.path, upper.path)
    if order < 0:
        return ChangeKind.DELETE, lower.path
    if order > 0:
        return ChangeKind.ADD, upper.path
    return ChangeKind.MODIFY, upper.path


def _is_dir(entry: CurrentPath) -> bool:
    return stat.S_ISDIR(entry.info.st_mode)


def _double_walk_diff(a: str, b: str) -> Iterator[Change]:
    lower_walk = path_walk(a)
    upper_walk = path_walk(b)
    f1 = next(lower_walk, None)
    f2 = next(upper_walk, None)
    rmdir = ""

    while f1 is not None or f2 is not None:
        kind, path = _path_change(f1, f2)
        info: os.stat_result | None = None

        if kind is ChangeKind.ADD:
            rmdir = ""
            info = f2.info
            f2 = next(upper_walk, None)
        elif kind is ChangeKind.DELETE:
            # Entries below an already deleted directory are implied.
            if rmdir and f1.path.startswith(rmdir):
                f1 = next(lower_walk, None)
                continue
            rmdir = f1.path + "/" if _is_dir(f1) else ""
            f1 = next(lower_walk, None)
        else:
            same = same_file(f1, f2)
            if _is_dir(f1) and not _is_dir(f2):
                rmdir = f1.path + "/"
            else:
                rmdir = ""
            info = f2.info
            f1 = next(lower_walk, None)
            f2 = next(upper_walk, None)
            if same:
                if not is_linked(info):
                    continue
                kind = ChangeKind.UNMODIFIED

        yield Change(kind, path, info)