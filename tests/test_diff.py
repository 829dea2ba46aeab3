import os
import shutil
import time

import pytest

from contfs import fstest
from contfs.diff import Change, ChangeKind, changes, iter_changes


def add(p):
    return (ChangeKind.ADD, p)


def delete(p):
    return (ChangeKind.DELETE, p)


def modify(p):
    return (ChangeKind.MODIFY, p)


def _copy_dir(dst, src):
    shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    shutil.copystat(src, dst)


def _info_mismatches(root, got):
    """Return the paths whose reported stat does not match the file on disk."""
    bad = []
    for change in got:
        if change.kind is ChangeKind.DELETE:
            if change.info is not None:
                bad.append(change.path)
            continue
        on_disk = os.stat(os.path.join(root, change.path.lstrip("/")))
        if (
            change.info.st_size != on_disk.st_size
            or change.info.st_mode != on_disk.st_mode
            or change.info.st_mtime_ns != on_disk.st_mtime_ns
        ):
            bad.append(change.path)
    return bad


def _diff_with_base(tmp_path, base, diff):
    lower = tmp_path / "lower"
    upper = tmp_path / "upper"
    lower.mkdir()
    upper.mkdir()
    base.apply(lower)
    _copy_dir(str(upper), str(lower))
    diff.apply(upper)
    got = list(iter_changes(str(lower), str(upper)))
    return str(upper), got


def _pairs(got):
    return [(c.kind, c.path) for c in got]


def _truncated_now():
    return time.time_ns() // 1_000_000_000 * 1_000_000_000


def test_simple_diff(tmp_path):
    l1 = fstest.apply(
        fstest.create_dir("/etc", 0o755),
        fstest.create_file("/etc/hosts", b"mydomain 10.0.0.1", 0o644),
        fstest.create_file("/etc/profile", b"PATH=/usr/bin", 0o644),
        fstest.create_file("/etc/unchanged", b"PATH=/usr/bin", 0o644),
        fstest.create_file("/etc/unexpected", b"#!/bin/sh", 0o644),
    )
    l2 = fstest.apply(
        fstest.create_file("/etc/hosts", b"mydomain 10.0.0.120", 0o644),
        fstest.create_file("/etc/profile", b"PATH=/usr/bin", 0o666),
        fstest.create_dir("/root", 0o700),
        fstest.create_file("/root/.bashrc", b"PATH=/usr/sbin:/usr/bin", 0o644),
        fstest.remove("/etc/unexpected"),
    )
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [
        modify("/etc/hosts"),
        modify("/etc/profile"),
        delete("/etc/unexpected"),
        add("/root"),
        add("/root/.bashrc"),
    ]
    assert _info_mismatches(root, got) == []


def test_empty_file_diff(tmp_path):
    tt = _truncated_now()
    l1 = fstest.apply(
        fstest.create_dir("/etc", 0o755),
        fstest.create_file("/etc/empty", b"", 0o644),
        fstest.chtimes("/etc/empty", tt, tt),
    )
    _, got = _diff_with_base(tmp_path, l1, fstest.apply())
    assert _pairs(got) == []


def test_nested_deletion(tmp_path):
    l1 = fstest.apply(
        fstest.create_dir("/d0", 0o755),
        fstest.create_dir("/d1", 0o755),
        fstest.create_dir("/d1/d2", 0o755),
        fstest.create_file("/d1/d2/f1", b"mydomain 10.0.0.1", 0o644),
    )
    l2 = fstest.apply(fstest.remove_all("/d0"), fstest.remove_all("/d1"))
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [delete("/d0"), delete("/d1")]
    assert _info_mismatches(root, got) == []


def test_directory_replace(tmp_path):
    l1 = fstest.apply(
        fstest.create_dir("/dir1", 0o755),
        fstest.create_file("/dir1/f1", b"#####", 0o644),
        fstest.create_dir("/dir1/f2", 0o755),
        fstest.create_file("/dir1/f2/f3", b"#!/bin/sh", 0o644),
    )
    l2 = fstest.apply(
        fstest.create_file("/dir1/f11", b"#New file here", 0o644),
        fstest.remove_all("/dir1/f2"),
        fstest.create_file("/dir1/f2", b"Now file", 0o666),
    )
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [add("/dir1/f11"), modify("/dir1/f2")]
    assert _info_mismatches(root, got) == []


def test_remove_directory_tree(tmp_path):
    l1 = fstest.apply(
        fstest.create_dir("/dir1/dir2/dir3", 0o755),
        fstest.create_file("/dir1/f1", b"f1", 0o644),
        fstest.create_file("/dir1/dir2/f2", b"f2", 0o644),
    )
    l2 = fstest.apply(fstest.remove_all("/dir1"))
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [delete("/dir1")]
    assert _info_mismatches(root, got) == []


def test_remove_directory_tree_with_dash(tmp_path):
    l1 = fstest.apply(
        fstest.create_dir("/dir1/dir2/dir3", 0o755),
        fstest.create_file("/dir1/f1", b"f1", 0o644),
        fstest.create_file("/dir1/dir2/f2", b"f2", 0o644),
        fstest.create_dir("/dir1-before", 0o755),
        fstest.create_file("/dir1-before/f2", b"f2", 0o644),
    )
    l2 = fstest.apply(fstest.remove_all("/dir1"))
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [delete("/dir1")]
    assert _info_mismatches(root, got) == []


def test_file_replace(tmp_path):
    l1 = fstest.apply(fstest.create_file("/dir1", b"a file, not a directory", 0o644))
    l2 = fstest.apply(
        fstest.remove("/dir1"),
        fstest.create_dir("/dir1/dir2", 0o755),
        fstest.create_file("/dir1/dir2/f1", b"also a file", 0o644),
    )
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [modify("/dir1"), add("/dir1/dir2"), add("/dir1/dir2/f1")]
    assert _info_mismatches(root, got) == []


def test_parent_directory_permission(tmp_path):
    l1 = fstest.apply(
        fstest.create_dir("/dir1", 0o700),
        fstest.create_dir("/dir2", 0o751),
        fstest.create_dir("/dir3", 0o777),
    )
    l2 = fstest.apply(
        fstest.create_dir("/dir1/d", 0o700),
        fstest.create_file("/dir1/d/f", b"irrelevant", 0o644),
        fstest.create_file("/dir1/f", b"irrelevant", 0o644),
        fstest.create_file("/dir2/f", b"irrelevant", 0o644),
        fstest.create_file("/dir3/f", b"irrelevant", 0o644),
    )
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [
        add("/dir1/d"),
        add("/dir1/d/f"),
        add("/dir1/f"),
        add("/dir2/f"),
        add("/dir3/f"),
    ]
    assert _info_mismatches(root, got) == []


def test_update_with_same_time(tmp_path):
    tt = _truncated_now()
    t1 = tt + 5
    t2 = tt + 6
    l1 = fstest.apply(
        fstest.create_file("/file-modified-time", b"1", 0o644),
        fstest.chtimes("/file-modified-time", t1, t1),
        fstest.create_file("/file-no-change", b"1", 0o644),
        fstest.chtimes("/file-no-change", t1, t1),
        fstest.create_file("/file-same-time", b"1", 0o644),
        fstest.chtimes("/file-same-time", t1, t1),
        fstest.create_file("/file-truncated-time-1", b"1", 0o644),
        fstest.chtimes("/file-truncated-time-1", tt, tt),
        fstest.create_file("/file-truncated-time-2", b"1", 0o644),
        fstest.chtimes("/file-truncated-time-2", tt, tt),
        fstest.create_file("/file-truncated-time-3", b"1", 0o644),
        fstest.chtimes("/file-truncated-time-3", t1, t1),
    )
    l2 = fstest.apply(
        fstest.create_file("/file-modified-time", b"2", 0o644),
        fstest.chtimes("/file-modified-time", t2, t2),
        fstest.create_file("/file-no-change", b"1", 0o644),
        fstest.chtimes("/file-no-change", t1, t1),
        fstest.create_file("/file-same-time", b"2", 0o644),
        fstest.chtimes("/file-same-time", t1, t1),
        fstest.create_file("/file-truncated-time-1", b"1", 0o644),
        fstest.chtimes("/file-truncated-time-1", t1, t1),
        fstest.create_file("/file-truncated-time-2", b"2", 0o644),
        fstest.chtimes("/file-truncated-time-2", tt, tt),
        fstest.create_file("/file-truncated-time-3", b"1", 0o644),
        fstest.chtimes("/file-truncated-time-3", tt, tt),
    )
    root, got = _diff_with_base(tmp_path, l1, l2)
    assert _pairs(got) == [
        modify("/file-modified-time"),
        modify("/file-truncated-time-1"),
        modify("/file-truncated-time-2"),
        modify("/file-truncated-time-3"),
    ]
    assert _info_mismatches(root, got) == []


@pytest.mark.parametrize("mtime", [0, 42])
def test_lchtimes(tmp_path, mtime):
    atime = 424242 * 1_000_000_000 + 42
    l1 = fstest.apply(
        fstest.create_file("/foo", b"foo", 0o644),
        fstest.symlink("/foo", "/lnk0"),
        fstest.lchtimes("/lnk0", atime, mtime),
    )
    _, got = _diff_with_base(tmp_path, l1, fstest.apply())
    assert _pairs(got) == []


def test_base_directory_changes(tmp_path):
    fstest.apply(
        fstest.create_dir("/etc", 0o755),
        fstest.create_file("/etc/hosts", b"mydomain 10.0.0.1", 0o644),
        fstest.create_file("/etc/profile", b"PATH=/usr/bin", 0o644),
        fstest.create_dir("/root", 0o700),
        fstest.create_file("/root/.bashrc", b"PATH=/usr/sbin:/usr/bin", 0o644),
    ).apply(tmp_path)
    got = list(iter_changes("", str(tmp_path)))
    assert _pairs(got) == [
        add("/etc"),
        add("/etc/hosts"),
        add("/etc/profile"),
        add("/root"),
        add("/root/.bashrc"),
    ]
    assert _info_mismatches(str(tmp_path), got) == []


def test_changes_calls_function_in_order(tmp_path):
    fstest.apply(
        fstest.create_dir("/b", 0o755),
        fstest.create_file("/a", b"x", 0o644),
    ).apply(tmp_path)
    seen = []
    changes(None, str(tmp_path), lambda kind, path, info: seen.append((kind, path)))
    assert seen == [add("/a"), add("/b")]


def test_changes_propagates_callback_error(tmp_path):
    fstest.create_file("/a", b"x", 0o644).apply(tmp_path)

    def fail(kind, path, info):
        raise RuntimeError(path)

    with pytest.raises(RuntimeError, match="/a"):
        changes("", str(tmp_path), fail)


def test_hardlinked_unchanged_file_reported_unmodified(tmp_path):
    lower = tmp_path / "lower"
    lower.mkdir()
    fstest.apply(
        fstest.create_file("/f", b"data", 0o644),
        fstest.link("/f", "/g"),
    ).apply(lower)
    got = list(iter_changes(str(lower), str(lower)))
    assert _pairs(got) == [
        (ChangeKind.UNMODIFIED, "/f"),
        (ChangeKind.UNMODIFIED, "/g"),
    ]


def test_missing_base_tree_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        list(iter_changes(str(tmp_path / "missing"), str(tmp_path)))


def test_change_kind_strings(tmp_path):
    assert [str(k) for k in ChangeKind] == ["unmodified", "add", "modify", "delete"]
    fstest.create_file("/a", b"x", 0o644).apply(tmp_path)
    got = list(iter_changes("", str(tmp_path)))
    assert [str(c.kind) for c in got] == ["add"]


def test_change_defaults():
    change = Change(ChangeKind.DELETE, "/x")
    assert (change.kind, change.path, change.info) == (ChangeKind.DELETE, "/x", None)