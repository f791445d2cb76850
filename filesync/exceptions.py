"""Custom exception classes for the file sync server."""

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    IO = "io"
    PERSISTENCE_CONFLICT = "persistence_conflict"


class FileSyncException(Exception):
    """
    Base exception class for all file sync errors.

    Messages are shown to clients as-is and must not contain storage paths.
    """
    kind = ErrorKind.IO
    code = "INTERNAL_ERROR"


class ValidationError(FileSyncException):
    """
    Raised for bad or missing input. Never retried.
    """
    kind = ErrorKind.VALIDATION
    code = "VALIDATION_ERROR"


class ArchiveFormatError(ValidationError):
    """
    Raised when a payload is not a readable zip container or one of its
    entries would be extracted outside the destination directory.
    """
    code = "INVALID_ARCHIVE"


class PayloadTooLargeError(ValidationError):
    code = "PAYLOAD_TOO_LARGE"


class NotFoundError(FileSyncException):
    kind = ErrorKind.NOT_FOUND
    code = "NOT_FOUND"


class FileRecordNotFoundError(NotFoundError):
    """
    Raised when a file id is unknown for the requesting owner, or its blob is
    missing.
    """
    code = "FILE_NOT_FOUND"


class SyncSessionNotFoundError(NotFoundError):
    """
    Raised when a sync session is unknown, owned by someone else or already
    completed.
    """
    code = "SYNC_NOT_FOUND"


class StorageIOError(FileSyncException):
    """
    Raised when reading or writing blobs, archives or scratch trees fails.
    """
    kind = ErrorKind.IO
    code = "STORAGE_IO_ERROR"


class PersistenceConflictError(FileSyncException):
    """
    Raised when a sync session write keeps losing to concurrent writers.
    """
    kind = ErrorKind.PERSISTENCE_CONFLICT
    code = "PERSISTENCE_CONFLICT"
