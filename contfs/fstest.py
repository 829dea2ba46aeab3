"""Composable filesystem changes for building test trees.

Every factory returns an :class:`Applier` whose ``apply(root)`` performs the
change with names resolved below ``root`` (a leading ``/`` in a name is
relative to ``root``). Times are nanoseconds since the epoch or datetimes.
"""

from __future__ import annotations

import os
import random
import shutil
import socket
from datetime import datetime
from typing import Callable, Union

TimeValue = Union[int, datetime]


def _clean(path: str) -> str:
    cleaned = os.path.normpath(path)
    if cleaned.startswith("//") and not cleaned.startswith("///"):
        cleaned = cleaned[1:]
    return cleaned


def _join(root: str | os.PathLike[str], name: str) -> str:
    joined = "/".join(part for part in (os.fspath(root), name) if part)
    return _clean(joined) if joined else ""


def _to_ns(value: TimeValue) -> int:
    if isinstance(value, datetime):
        seconds = int(value.replace(microsecond=0).timestamp())
        return seconds * 1_000_000_000 + value.microsecond * 1000
    return int(value)


class Applier:
    """A change that can be applied to a directory tree."""

    def __init__(self, fn: Callable[[str], None]) -> None:
        self._fn = fn

    def apply(self, root: str | os.PathLike[str]) -> None:
        """Apply the change below ``root``."""
        self._fn(os.fspath(root))


def _write_file(name: str, data: bytes, perm: int) -> Applier:
    def run(root: str) -> None:
        full_path = _join(root, name)
        fd = os.open(full_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, perm)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.chmod(full_path, perm)

    return Applier(run)


def create_file(name: str, content: bytes, perm: int) -> Applier:
    """Create or truncate ``name`` with ``content`` and permission ``perm``."""
    return _write_file(name, bytes(content), perm)


def create_random_file(name: str, seed: int, size: int, perm: int) -> Applier:
    """Create ``name`` holding ``size`` pseudo-random bytes from ``seed``."""
    data = random.Random(seed).randbytes(size)
    return _write_file(name, data, perm)


def remove(name: str) -> Applier:
    """Remove a file, link or empty directory."""

    def run(root: str) -> None:
        path = _join(root, name)
        if os.path.isdir(path) and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.remove(path)

    return Applier(run)


def remove_all(name: str) -> Applier:
    """Remove ``name`` and everything below it; a missing path is fine."""

    def run(root: str) -> None:
        path = _join(root, name)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass

    return Applier(run)


def create_dir(name: str, perm: int) -> Applier:
    """Create directory ``name`` and its parents, then set ``perm`` on it."""

    def run(root: str) -> None:
        full_path = _join(root, name)
        os.makedirs(full_path, perm, exist_ok=True)
        os.chmod(full_path, perm)

    return Applier(run)


def rename(old: str, new: str) -> Applier:
    """Rename ``old`` to ``new``."""
    return Applier(lambda root: os.rename(_join(root, old), _join(root, new)))


def chown(name: str, uid: int, gid: int) -> Applier:
    """Change the owner and group of ``name``."""
    return Applier(lambda root: os.chown(_join(root, name), uid, gid))


def chtimes(name: str, atime: TimeValue, mtime: TimeValue) -> Applier:
    """Set access and modification times, following symlinks."""

    def run(root: str) -> None:
        os.utime(_join(root, name), ns=(_to_ns(atime), _to_ns(mtime)))

    return Applier(run)


def chmod(name: str, perm: int) -> Applier:
    """Change the permission bits of ``name``."""
    return Applier(lambda root: os.chmod(_join(root, name), perm))


def symlink(oldname: str, newname: str) -> Applier:
    """Create symlink ``newname`` pointing at ``oldname`` verbatim."""
    return Applier(lambda root: os.symlink(oldname, _join(root, newname)))


def link(oldname: str, newname: str) -> Applier:
    """Create hard link ``newname`` to ``oldname``."""

    def run(root: str) -> None:
        src, dst = _join(root, oldname), _join(root, newname)
        try:
            os.link(src, dst, follow_symlinks=False)
        except NotImplementedError:
            os.link(src, dst)

    return Applier(run)


def create_socket(name: str, perm: int) -> Applier:
    """Create a unix socket file at ``name`` with permission ``perm``."""

    def run(root: str) -> None:
        full_path = _join(root, name)
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.bind(full_path)
        os.chmod(full_path, perm)

    return Applier(run)


def apply(*args: Applier) -> Applier:
    """Combine appliers into one that runs them in order, stopping on error."""

    def run(root: str) -> None:
        for applier in args:
            applier.apply(root)

    return Applier(run)


def set_xattr(name: str, key: str, value: str | bytes) -> Applier:
    """Set extended attribute ``key`` on ``name`` without following symlinks."""
    data = value.encode() if isinstance(value, str) else bytes(value)

    def run(root: str) -> None:
        os.setxattr(_join(root, name), key, data, 0, follow_symlinks=False)

    return Applier(run)


def lchtimes(name: str, atime: TimeValue, mtime: TimeValue) -> Applier:
    """Set access and modification times without following symlinks."""

    def run(root: str) -> None:
        os.utime(
            _join(root, name),
            ns=(_to_ns(atime), _to_ns(mtime)),
            follow_symlinks=False,
        )

    return Applier(run)


def base() -> Applier:
    """An applier that changes nothing; the base tree needs no setup."""
    return Applier(lambda root: None)