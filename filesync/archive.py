"""Zip archive extraction, inventory and scoped scratch directories."""

import shutil
import tempfile
import zipfile
import zlib
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Generator, List, Optional, Union

from common.constants import HASH_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from common.types import ArchiveEntry, ExtractResult
from filesync import config
from filesync.exceptions import ArchiveFormatError, StorageIOError

logger = get_logger(__name__)


def _open_zip(archive_stream: BinaryIO) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(archive_stream)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise ArchiveFormatError("Uploaded file is not a valid zip archive.") from e


def _safe_relative_path(name: str) -> PurePosixPath:
    """
    Normalize a zip entry name to a relative path inside the destination.

    Raises:
        ArchiveFormatError: If the entry is absolute or climbs out with '..'
    """
    path = PurePosixPath(name.replace("\\", "/"))
    if not path.parts or path.is_absolute() or ".." in path.parts or path.parts[0].endswith(":"):
        raise ArchiveFormatError("Archive contains an entry outside its root.")
    return path


def entries(archive_stream: BinaryIO) -> List[ArchiveEntry]:
    """
    List the files contained in an archive without extracting them.

    Directory entries are skipped.

    Raises:
        ArchiveFormatError: If the stream is not a zip archive
    """
    with _open_zip(archive_stream) as archive:
        return [
            ArchiveEntry(path=str(_safe_relative_path(info.filename)), size=info.file_size)
            for info in archive.infolist()
            if not info.is_dir()
        ]


def extract(archive_stream: BinaryIO, destination: Union[str, Path]) -> ExtractResult:
    """
    Extract every file of an archive under destination.

    Relative paths are preserved and existing files are overwritten. Every
    entry name is validated before anything is written.

    Args:
        archive_stream: Readable, seekable binary stream holding a zip archive
        destination: Directory to extract into (created if missing)

    Returns:
        ExtractResult with the relative paths written and their total size

    Raises:
        ArchiveFormatError: If the stream is not a valid archive
        StorageIOError: If writing fails partway; the destination is then
            left in an undefined state and must be removed by the caller
    """
    root = Path(destination)

    with _open_zip(archive_stream) as archive:
        members = [
            (info, _safe_relative_path(info.filename))
            for info in archive.infolist()
            if not info.is_dir()
        ]

        written = []
        total_bytes = 0
        try:
            root.mkdir(parents=True, exist_ok=True)
            for info, relative in members:
                target = root.joinpath(*relative.parts)
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as source, open(target, "wb") as sink:
                    shutil.copyfileobj(source, sink, HASH_PIECE_SIZE_BYTES)
                written.append(str(relative))
                total_bytes += info.file_size
        except (zipfile.BadZipFile, EOFError, zlib.error, RuntimeError, NotImplementedError) as e:
            # Corrupt deflate data, encrypted entries and unsupported compression
            raise ArchiveFormatError("Uploaded archive is corrupted.") from e
        except OSError as e:
            logger.error(f"Archive extraction failed after {len(written)} files: {e}")
            raise StorageIOError("Failed to extract archive.") from e

    logger.debug(f"Extracted {len(written)} files ({total_bytes} bytes)")
    return ExtractResult(files=written, total_bytes=total_bytes)


@contextmanager
def scratch_directory(prefix: str, base_dir: Optional[str] = None) -> Generator[Path, None, None]:
    """
    Context manager for a temporary extraction directory.

    The directory and everything below it is removed when the block exits,
    whether it returns, raises or is cancelled.
    """
    path = Path(tempfile.mkdtemp(prefix=f"{prefix}_", dir=base_dir or config.SCRATCH_DIR))
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.error(f"Scratch directory could not be removed: {path.name}")
