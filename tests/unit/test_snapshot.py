"""Tests for repository snapshot identity."""

import os
from pathlib import Path

from reposcribe.services.snapshot import compute_snapshot, latest_mtime_ns


def _bump(path: Path, seconds: int = 3600) -> None:
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


def test_hash_is_stable_for_unchanged_tree(tmp_path: Path):
    (tmp_path / "a.py").write_text("print(1)\n")
    first = compute_snapshot(tmp_path)
    second = compute_snapshot(tmp_path)
    assert first == second
    assert len(first.repo_hash) == 12
    assert first.root == tmp_path.resolve()


def test_touching_a_file_changes_the_hash(tmp_path: Path):
    target = tmp_path / "pkg" / "mod.py"
    target.parent.mkdir()
    target.write_text("x = 1\n")
    before = compute_snapshot(tmp_path)

    _bump(target)
    after = compute_snapshot(tmp_path)
    assert after.repo_hash != before.repo_hash
    assert after.latest_mtime_ns > before.latest_mtime_ns


def test_skipped_directories_do_not_affect_identity(tmp_path: Path):
    (tmp_path / "a.py").write_text("x = 1\n")
    vendor = tmp_path / "node_modules" / "dep" / "index.js"
    vendor.parent.mkdir(parents=True)
    vendor.write_text("module.exports = {}\n")
    before = compute_snapshot(tmp_path)

    _bump(vendor, 7200)
    assert compute_snapshot(tmp_path).repo_hash == before.repo_hash


def test_empty_directory_has_zero_mtime(tmp_path: Path):
    assert latest_mtime_ns(tmp_path) == 0
