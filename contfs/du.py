"""Disk usage of directory trees and of the changes between two trees."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .diff import ChangeKind, iter_changes
from .paths import path_walk

# st_blocks is counted in 512-byte units.
BLOCKS_UNIT_SIZE = 512


@dataclass(frozen=True)
class Usage:
    """Number of distinct inodes and bytes allocated on disk."""

    inodes: int = 0
    size: int = 0


class _Counter:
    def __init__(self) -> None:
        self._seen: set[tuple[int, int]] = set()
        self._size = 0

    def add(self, st: os.stat_result) -> None:
        key = (st.st_dev, st.st_ino)
        if key not in self._seen:
            self._seen.add(key)
            self._size += st.st_blocks * BLOCKS_UNIT_SIZE

    def usage(self) -> Usage:
        return Usage(inodes=len(self._seen), size=self._size)


def disk_usage(*args: str | os.PathLike[str]) -> Usage:
    """Count the inodes and allocated bytes of everything under the given roots.

    Roots themselves are counted; hard links and repeated roots count once.
    """
    counter = _Counter()
    for root in args:
        root = os.fspath(root)
        counter.add(os.lstat(root))
        for entry in path_walk(root):
            counter.add(entry.info)
    return counter.usage()


def diff_usage(a: str | os.PathLike[str] | None, b: str | os.PathLike[str]) -> Usage:
    """Count the inodes and allocated bytes of what was added or modified from ``a`` to ``b``."""
    counter = _Counter()
    for change in iter_changes(a, b):
        if change.kind in (ChangeKind.ADD, ChangeKind.MODIFY):
            counter.add(change.info)
    return counter.usage()