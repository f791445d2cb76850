"""Compare two extracted directory trees by relative path and content digest."""

import os
from pathlib import Path
from typing import Set, Union

from common.checksum import digest_file
from common.types import DirectoryDiff


def list_relative_files(root: Union[str, Path]) -> Set[str]:
    """
    Collect the relative paths of every regular file below root.

    Paths use '/' separators on every platform and keep their original case,
    so comparisons between trees are exact and case-sensitive.
    """
    root = Path(root)
    paths = set()
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            full_path = Path(dirpath) / filename
            if full_path.is_file():
                paths.add(full_path.relative_to(root).as_posix())
    return paths


def files_differ(new_path: Path, old_path: Path) -> bool:
    """
    Return True when two files have different content.

    Size is checked first; equal sizes fall through to a full digest
    comparison.
    """
    if new_path.stat().st_size != old_path.stat().st_size:
        return True
    return digest_file(new_path) != digest_file(old_path)


def diff(new_root: Union[str, Path], old_root: Union[str, Path]) -> DirectoryDiff:
    """
    Compute which files were added, deleted or modified going from old_root
    to new_root.

    Args:
        new_root: Root of the replacement tree
        old_root: Root of the previous tree

    Returns:
        DirectoryDiff with sorted relative paths
    """
    new_root = Path(new_root)
    old_root = Path(old_root)

    new_files = list_relative_files(new_root)
    old_files = list_relative_files(old_root)

    modified = [
        relative
        for relative in sorted(new_files & old_files)
        if files_differ(new_root / relative, old_root / relative)
    ]

    return DirectoryDiff(
        added=sorted(new_files - old_files),
        deleted=sorted(old_files - new_files),
        modified=modified,
    )
