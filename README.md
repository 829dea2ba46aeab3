# contfs

Filesystem helpers for working with directory trees such as image layers.
POSIX systems only.

## Modules

- `contfs.diff`: the changes between a base directory and a changed
  directory.
  - `iter_changes(a, b)` yields frozen `Change` records (`kind`, `path`,
    `info`), ordered by path. `path` is relative to the tree and starts with
    `/`. `info` is the `lstat` result from the changed tree, or `None` for a
    deletion.
  - `changes(a, b, change_fn)` calls `change_fn(kind, path, info)` for each
    change. An exception raised by `change_fn` stops the walk.
  - `ChangeKind` is an `IntEnum` with `UNMODIFIED`, `ADD`, `MODIFY` and
    `DELETE`. Its `str()` is the lower-case name.
  - If `a` is empty or `None`, every entry of `b` is reported as an addition.
  - A removed directory produces a single delete for its root.
  - A directory replaced by a file produces no deletes for its former
    contents.
  - Unchanged files are skipped, except hard-linked files, which are
    reported as `UNMODIFIED`.
  - File contents, or symlink targets, are compared only when both
    modification times have no sub-second part.
- `contfs.du`: `disk_usage(*roots)` and `diff_usage(a, b)` return a frozen
  `Usage` with `inodes` and `size`. `size` is the number of allocated bytes,
  computed from `st_blocks` × 512. Each `(device, inode)` pair is counted
  once, so hard links count once. `diff_usage` counts only added and
  modified entries.
- `contfs.paths`:
  - `root_path(root, path)` joins `path` onto `root` and follows symlinks
    without leaving `root`. Absolute link targets are taken relative to
    `root`, and `..` never climbs above it. It raises `TooManyLinksError`, an
    `OSError` with `ELOOP`, after more than 255 links.
  - `directory_compare(a, b)` returns -1, 0 or 1. It compares byte-wise,
    with `/` sorting before every other byte.
  - `path_walk(root)` yields `CurrentPath` entries in that order.
  - `same_file`, `same_fs_time`, `compare_file_content`,
    `compare_symlink_target` and `compare_capabilities` are the comparison
    helpers that the diff uses.
  - `get_link_info`, `get_link_source` and `is_linked` report hard-link
    information from an `os.stat_result`.
  - `stat_atime`, `stat_ctime` and `stat_mtime` return
    `(seconds, nanoseconds)`. `stat_atime_as_time` returns a UTC
    `datetime`.
- `contfs.ioutils`: `atomic_write_file(filename, data, perm)` writes to a
  temporary file in the same directory. It sets `perm` on that file, syncs
  it and renames it over `filename`.
- `contfs.groups`:
  - `parse_groups(stream)` reads `name:password:gid:members` lines into
    `Group` records. It skips `#` comments and raises `ValueError` on a
    malformed entry or gid.
  - `GroupIndex.from_groups(...)` gives lookups with `by_name` and `by_gid`.
  - `get_group_index(path)` reads a group file (default `/etc/group`) into
    an index.
  - `get_group_name(gid, path)` returns a group's name, and raises
    `LookupError` if no entry has that gid.
- `contfs.fstest`: composable `Applier` objects for building directory
  trees in tests.
  - The factories are `create_file`, `create_random_file`, `create_dir`,
    `remove`, `remove_all`, `rename`, `chown`, `chmod`, `chtimes`,
    `lchtimes`, `symlink`, `link`, `create_socket`, `set_xattr`, `base` and
    `apply`. `apply` runs several appliers in order.
  - Names are resolved below the root passed to `Applier.apply(root)`.
  - Times are nanoseconds since the epoch or `datetime` values.

## Example

```python
import tempfile

from contfs import fstest
from contfs.diff import iter_changes
from contfs.du import disk_usage
from contfs.paths import root_path

with tempfile.TemporaryDirectory() as lower, tempfile.TemporaryDirectory() as upper:
    fstest.apply(
        fstest.create_dir("/etc", 0o755),
        fstest.create_file("/etc/hosts", b"127.0.0.1 localhost", 0o644),
    ).apply(lower)
    fstest.apply(
        fstest.create_dir("/etc", 0o755),
        fstest.create_file("/etc/hosts", b"127.0.0.1 localhost.localdomain", 0o644),
        fstest.symlink("/etc/hosts", "/hosts"),
    ).apply(upper)

    for change in iter_changes(lower, upper):
        print(change.kind, change.path)

    print(disk_usage(upper).size)
    print(root_path(upper, "hosts"))  # <upper>/etc/hosts
```

## What it does not do

- There is no command-line tool. Everything here is a library.
- It does not build manifests of directory trees, and it has no ready-made
  check that two directories are equal.
- Diffs always walk both trees. The diff does not detect overlay or other
  union-filesystem layers.
- It does not detect whether a filesystem supports `d_type`.
- Windows is not supported.

## Running the tests

```
pip install -e .[test]
pytest
```