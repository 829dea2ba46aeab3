"""Path resolution under a root, tree walking and file comparison helpers."""

from __future__ import annotations

import errno
import os
import posixpath
import stat
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator

_NS_PER_SECOND = 1_000_000_000
_COMPARE_CHUNK_SIZE = 32 * 1024
_MAX_LINKS = 255
_CAPABILITY_XATTR = "security.capability"
_NO_XATTR_ERRNOS = {
    getattr(errno, "ENODATA", None),
    getattr(errno, "ENOTSUP", None),
    getattr(errno, "EOPNOTSUPP", None),
} - {None}


class TooManyLinksError(OSError):
    """Raised when resolving a path follows too many symbolic links."""

    def __init__(self) -> None:
        super().__init__(errno.ELOOP, "too many links")


@dataclass(frozen=True)
class CurrentPath:
    """A walked entry: its path relative to the walk root, lstat and full path."""

    path: str
    info: os.stat_result
    full_path: str


def _clean(path: str) -> str:
    """Lexically clean ``path``; the empty path becomes ``.``."""
    cleaned = posixpath.normpath(path) if path else "."
    if cleaned.startswith("//") and not cleaned.startswith("///"):
        cleaned = cleaned[1:]
    return cleaned


def _join(*parts: str) -> str:
    """Join the non-empty parts with ``/`` and clean; all empty gives ``""``."""
    joined = "/".join(part for part in parts if part)
    return _clean(joined) if joined else ""


def _split(path: str) -> tuple[str, str]:
    """Split after the last separator; the directory keeps its trailing slash."""
    index = path.rfind("/")
    return path[: index + 1], path[index + 1 :]


def directory_compare(a: str, b: str) -> int:
    """Compare paths byte-wise with the separator sorting before every byte.

    Returns -1, 0 or 1. This is the order in which a tree walk yields paths.
    """
    ka = os.fsencode(a).replace(b"/", b"\x00")
    kb = os.fsencode(b).replace(b"/", b"\x00")
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def root_path(root: str, path: str) -> str:
    """Join ``path`` onto ``root``, resolving symlinks so they stay below ``root``.

    Absolute link targets are taken relative to ``root`` and ``..`` never
    climbs above it. Raises TooManyLinksError after more than 255 links.
    """
    if path == "":
        return root
    links_walked = 0

    def walk_link(target: str) -> tuple[str, bool]:
        nonlocal links_walked
        if links_walked > _MAX_LINKS:
            raise TooManyLinksError()
        target = _join("/", target)
        if target == "/":
            return target, False
        real_path = _join(root, target)
        try:
            info = os.lstat(real_path)
        except FileNotFoundError:
            return target, False
        if not stat.S_ISLNK(info.st_mode):
            return target, False
        new_path = os.readlink(real_path)
        links_walked += 1
        return new_path, True

    def walk_links(target: str) -> str:
        directory, name = _split(target)
        if directory == "":
            return walk_link(name)[0]
        if name == "":
            if directory == "/":
                return directory
            return walk_links(directory[:-1])
        new_dir = walk_links(directory)
        new_path, is_link = walk_link(_join(new_dir, name))
        if not is_link or posixpath.isabs(new_path):
            return new_path
        return _join(new_dir, new_path)

    while True:
        before = links_walked
        path = walk_links(path)
        if before == links_walked:
            anchored = _join("/", path)
            if path == anchored:
                return _join(root, anchored)
            path = anchored


def same_fs_time(a_ns: int, b_ns: int) -> bool:
    """Whether two nanosecond timestamps match, allowing for truncation.

    Times are equal when identical, or when the seconds agree and either
    side has a zero sub-second part (as archives without sub-second
    precision produce).
    """
    if a_ns == b_ns:
        return True
    a_sec, a_nsec = divmod(a_ns, _NS_PER_SECOND)
    b_sec, b_nsec = divmod(b_ns, _NS_PER_SECOND)
    return a_sec == b_sec and (a_nsec == 0 or b_nsec == 0)


def compare_symlink_target(p1: str, p2: str) -> bool:
    """Whether two symlinks point at the same target text."""
    return os.readlink(p1) == os.readlink(p2)


def compare_file_content(p1: str, p2: str) -> bool:
    """Whether two files hold the same bytes."""
    with open(p1, "rb") as f1, open(p2, "rb") as f2:
        while True:
            chunk1 = f1.read(_COMPARE_CHUNK_SIZE)
            chunk2 = f2.read(_COMPARE_CHUNK_SIZE)
            if chunk1 != chunk2:
                return False
            if not chunk1:
                return True


def _capability(path: str) -> bytes | None:
    try:
        return os.getxattr(path, _CAPABILITY_XATTR, follow_symlinks=False)
    except OSError as exc:
        if exc.errno in _NO_XATTR_ERRNOS:
            return None
        raise OSError(exc.errno, f"failed to get xattr for {path}") from exc


def compare_capabilities(p1: str, p2: str) -> bool:
    """Whether two paths carry the same file capabilities extended attribute."""
    return (_capability(p1) or b"") == (_capability(p2) or b"")


def same_file(f1: CurrentPath, f2: CurrentPath) -> bool:
    """Whether two walked entries are unchanged with respect to each other.

    Metadata (mode, owner, device), capabilities, size and modification time
    are compared; content or link target is read only when both times have
    been truncated to whole seconds.
    """
    a, b = f1.info, f2.info
    if os.path.samestat(a, b):
        return True
    if (a.st_mode, a.st_uid, a.st_gid, a.st_rdev) != (
        b.st_mode,
        b.st_uid,
        b.st_gid,
        b.st_rdev,
    ):
        return False
    if not compare_capabilities(f1.full_path, f2.full_path):
        return False
    if not stat.S_ISDIR(a.st_mode):
        if a.st_size != b.st_size:
            return False
        sec1, nsec1 = divmod(a.st_mtime_ns, _NS_PER_SECOND)
        sec2, nsec2 = divmod(b.st_mtime_ns, _NS_PER_SECOND)
        if sec1 != sec2:
            return False
        if nsec1 == 0 and nsec2 == 0:
            if stat.S_ISLNK(a.st_mode):
                return compare_symlink_target(f1.full_path, f2.full_path)
            if a.st_size == 0:
                return True
            return compare_file_content(f1.full_path, f2.full_path)
        if nsec1 != nsec2:
            return False
    return True


def path_walk(root: str | os.PathLike[str]) -> Iterator[CurrentPath]:
    """Yield every entry below ``root`` in lexical pre-order, root excluded.

    Paths are relative to ``root`` with a leading ``/``; entries are
    lstat'ed and symlinks are not followed.
    """
    root = os.fspath(root)
    yield from _walk_tree(root, "/", root, os.lstat(root))


def _walk_tree(
    root: str, rel: str, full: str, info: os.stat_result
) -> Iterator[CurrentPath]:
    if rel != "/":
        yield CurrentPath(path=rel, info=info, full_path=_join(root, rel))
    if not stat.S_ISDIR(info.st_mode):
        return
    for name in sorted(os.listdir(full), key=os.fsencode):
        child_full = os.path.join(full, name)
        yield from _walk_tree(
            root, posixpath.join(rel, name), child_full, os.lstat(child_full)
        )


def get_link_info(st: os.stat_result) -> tuple[int, bool]:
    """Return the inode of ``st`` and whether it is a hard-linked non-directory."""
    return st.st_ino, is_linked(st)


def get_link_source(name: str, st: os.stat_result, inodes: dict[int, str]) -> str | None:
    """Return the first name seen for the hard-linked node of ``st``.

    When the node is hard linked but not yet in ``inodes``, ``name`` is
    recorded as its source and None is returned. None is also returned for
    files that are not hard linked.
    """
    inode, is_hardlink = get_link_info(st)
    if not is_hardlink:
        return None
    source = inodes.get(inode)
    if source is None:
        inodes[inode] = name
    return source


def is_linked(st: os.stat_result) -> bool:
    """Whether ``st`` describes a non-directory with more than one link."""
    return not stat.S_ISDIR(st.st_mode) and st.st_nlink > 1


def stat_atime(st: os.stat_result) -> tuple[int, int]:
    """Return the access time as ``(seconds, nanoseconds)``."""
    return divmod(st.st_atime_ns, _NS_PER_SECOND)


def stat_ctime(st: os.stat_result) -> tuple[int, int]:
    """Return the status change time as ``(seconds, nanoseconds)``."""
    return divmod(st.st_ctime_ns, _NS_PER_SECOND)


def stat_mtime(st: os.stat_result) -> tuple[int, int]:
    """Return the modification time as ``(seconds, nanoseconds)``."""
    return divmod(st.st_mtime_ns, _NS_PER_SECOND)


def stat_atime_as_time(st: os.stat_result) -> datetime:
    """Return the access time as an aware UTC datetime (microsecond precision)."""
    seconds, nanos = stat_atime(st)
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    return epoch + timedelta(seconds=seconds, microseconds=nanos // 1000)