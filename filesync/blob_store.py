"""Blob storage keyed by file id: local directory and in-memory implementations."""

import io
import os
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, Union

from common.constants import HASH_PIECE_SIZE_BYTES


class BlobStore(ABC):
    """
    Byte store addressed by file id. Writes for the same id are
    last-writer-wins.
    """

    @abstractmethod
    def write(self, file_id: str, stream: BinaryIO) -> int:
        """
        Replace the content stored under file_id with the rest of stream.

        Returns:
            Number of bytes written
        """

    @abstractmethod
    def read(self, file_id: str) -> BinaryIO:
        """
        Open the content stored under file_id. The caller closes the stream.

        Raises:
            FileNotFoundError: If nothing is stored under file_id
        """

    @abstractmethod
    def exists(self, file_id: str) -> bool:
        ...

    @abstractmethod
    def delete(self, file_id: str) -> bool:
        """
        Returns:
            True if content was deleted, False if none existed
        """

    def write_bytes(self, file_id: str, data: bytes) -> int:
        return self.write(file_id, io.BytesIO(data))

    def read_streaming(self, file_id: str, piece_size: int = HASH_PIECE_SIZE_BYTES) -> Iterator[bytes]:
        """
        Stream stored content in pieces.

        Opens the blob eagerly so a missing id fails before iteration starts.
        """
        stream = self.read(file_id)

        def pieces() -> Iterator[bytes]:
            with stream:
                while True:
                    piece = stream.read(piece_size)
                    if not piece:
                        break
                    yield piece

        return pieces()


class LocalBlobStore(BlobStore):
    """
    Stores each blob as one file named after its id under a root directory.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def ensure_directory(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def get_blob_path(self, file_id: str) -> Path:
        """
        Get file path for a blob.

        Raises:
            ValueError: If file_id could address a path outside the root
        """
        if not file_id or "/" in file_id or "\\" in file_id or file_id in (".", ".."):
            raise ValueError("Invalid blob id")
        return self.root / f"{file_id}.blob"

    def write(self, file_id: str, stream: BinaryIO) -> int:
        """
        Write to a temporary file in the same directory, then rename it over
        the previous blob so readers never see partial content.
        """
        self.ensure_directory()
        target = self.get_blob_path(file_id)
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=f".{file_id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as sink:
                shutil.copyfileobj(stream, sink, HASH_PIECE_SIZE_BYTES)
                written = sink.tell()
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return written

    def read(self, file_id: str) -> BinaryIO:
        return open(self.get_blob_path(file_id), "rb")

    def exists(self, file_id: str) -> bool:
        return self.get_blob_path(file_id).is_file()

    def delete(self, file_id: str) -> bool:
        filepath = self.get_blob_path(file_id)
        if filepath.exists():
            filepath.unlink()
            return True
        return False


class InMemoryBlobStore(BlobStore):
    """
    Dictionary-backed blob store for tests and ephemeral servers.
    """

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def write(self, file_id: str, stream: BinaryIO) -> int:
        data = stream.read()
        with self._lock:
            self._blobs[file_id] = data
        return len(data)

    def read(self, file_id: str) -> BinaryIO:
        with self._lock:
            if file_id not in self._blobs:
                raise FileNotFoundError(f"No blob stored for {file_id}")
            return io.BytesIO(self._blobs[file_id])

    def exists(self, file_id: str) -> bool:
        with self._lock:
            return file_id in self._blobs

    def delete(self, file_id: str) -> bool:
        with self._lock:
            return self._blobs.pop(file_id, None) is not None

    def __len__(self) -> int:
        return len(self._blobs)
