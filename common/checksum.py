"""SHA-256 content digests for byte strings, streams and on-disk files."""

import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from common.constants import HASH_PIECE_SIZE_BYTES


def digest(data: Union[bytes, BinaryIO]) -> str:
    """
    Compute the SHA-256 digest of a byte string or a binary stream.

    Streams are read to the end in fixed-size pieces; the stream position is
    left at EOF.

    Args:
        data: Bytes or a readable binary stream

    Returns:
        Lowercase hexadecimal SHA-256 digest (64 characters)

    Raises:
        OSError: If the stream cannot be fully read
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        return hashlib.sha256(data).hexdigest()

    calculator = IncrementalChecksum()
    for piece in iter(lambda: data.read(HASH_PIECE_SIZE_BYTES), b""):
        calculator.update(piece)
    return calculator.finalize()


def digest_file(path: Union[str, Path]) -> str:
    """
    Compute the SHA-256 digest of a file on disk.

    Raises:
        OSError: If the file cannot be opened or read
    """
    with open(path, "rb") as f:
        return digest(f)


class IncrementalChecksum:
    """
    Calculate a SHA-256 digest incrementally for streaming data.

    Usage:
        calculator = IncrementalChecksum()
        calculator.update(piece1)
        calculator.update(piece2)
        final_checksum = calculator.finalize()
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self._finalized = False

    def update(self, data: bytes) -> None:
        if self._finalized:
            raise ValueError("Cannot update after finalization")
        self._hasher.update(data)

    def finalize(self) -> str:
        self._finalized = True
        return self._hasher.hexdigest()

    def reset(self) -> None:
        """Reset calculator to initial state."""
        self._hasher = hashlib.sha256()
        self._finalized = False
