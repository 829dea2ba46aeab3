"""Helpers for writing files safely."""

from __future__ import annotations

import os
import tempfile


def atomic_write_file(filename: str | os.PathLike[str], data: bytes, perm: int) -> None:
    """Write ``data`` to ``filename`` through a temporary file and a rename.

    The temporary file lives in the same directory as the target, gets the
    permission bits ``perm`` and is synced to disk before it replaces the
    target.
    """
    filename = os.fspath(filename)
    directory = os.path.dirname(filename) or "."
    fd, tmp_name = tempfile.mkstemp(
        prefix=".tmp-" + os.path.basename(filename), dir=directory
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            os.chmod(tmp_name, perm)
            written = handle.write(data)
            if written < len(data):
                raise OSError(f"short write: {written} of {len(data)} bytes")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, filename)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise