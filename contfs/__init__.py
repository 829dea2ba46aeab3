"""Filesystem diffs, disk usage, symlink-bounded paths, atomic writes, group files and tree fixtures."""

__version__ = "0.1.0"
__all__ = ["diff", "du", "fstest", "groups", "ioutils", "paths"]