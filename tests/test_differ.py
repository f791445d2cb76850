"""Tests for directory tree comparison."""

from pathlib import Path
from typing import Dict

from common.types import DirectoryDiff
from filesync.differ import diff, files_differ, list_relative_files


def write_tree(root: Path, files: Dict[str, bytes]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    root.mkdir(parents=True, exist_ok=True)
    return root


def test_diff_reports_added_and_modified(tmp_path):
    old = write_tree(tmp_path / "a", {"f1": b"x", "f2": b"y"})
    new = write_tree(tmp_path / "b", {"f1": b"x", "f2": b"z", "f3": b"w"})

    result = diff(new, old)

    assert result == DirectoryDiff(added=["f3"], deleted=[], modified=["f2"])
    assert result.has_changes


def test_diff_reports_deleted(tmp_path):
    old = write_tree(tmp_path / "old", {"keep.txt": b"1", "gone.txt": b"2"})
    new = write_tree(tmp_path / "new", {"keep.txt": b"1"})

    assert diff(new, old) == DirectoryDiff(added=[], deleted=["gone.txt"], modified=[])


def test_identical_trees_have_no_changes(tmp_path):
    files = {"a.txt": b"same", "sub/b.txt": b"also same"}
    old = write_tree(tmp_path / "old", files)
    new = write_tree(tmp_path / "new", files)

    result = diff(new, old)

    assert not result.has_changes


def test_same_size_different_content_is_modified(tmp_path):
    old = write_tree(tmp_path / "old", {"data.bin": b"abcd"})
    new = write_tree(tmp_path / "new", {"data.bin": b"abce"})

    assert diff(new, old).modified == ["data.bin"]


def test_size_change_is_modified(tmp_path):
    old = write_tree(tmp_path / "old", {"data.bin": b"abcd"})
    new = write_tree(tmp_path / "new", {"data.bin": b"abcde"})

    assert files_differ(new / "data.bin", old / "data.bin")
    assert diff(new, old).modified == ["data.bin"]


def test_nested_directories_any_depth(tmp_path):
    deep = "/".join(f"level{i}" for i in range(25)) + "/leaf.txt"
    old = write_tree(tmp_path / "old", {deep: b"before"})
    new = write_tree(tmp_path / "new", {deep: b"after!"})

    assert diff(new, old).modified == [deep]


def test_paths_compare_case_sensitively(tmp_path):
    old = write_tree(tmp_path / "old", {"Docs/Report.txt": b"r"})
    new = write_tree(tmp_path / "new", {"docs/report.txt": b"r"})

    result = diff(new, old)

    assert result.added == ["docs/report.txt"]
    assert result.deleted == ["Docs/Report.txt"]
    assert result.modified == []


def test_relative_paths_use_forward_slashes(tmp_path):
    root = write_tree(tmp_path / "tree", {"a/b/c.txt": b"1", "d.txt": b"2"})

    assert list_relative_files(root) == {"a/b/c.txt", "d.txt"}


def test_empty_directories_are_ignored(tmp_path):
    old = write_tree(tmp_path / "old", {"a.txt": b"1"})
    new = write_tree(tmp_path / "new", {"a.txt": b"1"})
    (new / "empty" / "dir").mkdir(parents=True)

    assert not diff(new, old).has_changes


def test_both_trees_empty(tmp_path):
    old = write_tree(tmp_path / "old", {})
    new = write_tree(tmp_path / "new", {})

    assert diff(new, old) == DirectoryDiff(added=[], deleted=[], modified=[])
