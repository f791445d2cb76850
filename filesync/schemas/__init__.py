"""Pydantic schemas for API requests and responses."""

from filesync.schemas.common import ErrorResponse, MessageResponse
from filesync.schemas.files import (
    ArchiveUpdateResponse,
    ChecksumResponse,
    FileMetadataResponse,
    ListFilesResponse,
    UploadArchiveResponse,
    UploadFileResponse,
)
from filesync.schemas.sync import (
    FileSyncRequest,
    IncompleteSyncListResponse,
    SynchronizeResponse,
    UploadSyncResponse,
)

__all__ = [
    "ErrorResponse",
    "MessageResponse",
    "ArchiveUpdateResponse",
    "ChecksumResponse",
    "FileMetadataResponse",
    "ListFilesResponse",
    "UploadArchiveResponse",
    "UploadFileResponse",
    "FileSyncRequest",
    "IncompleteSyncListResponse",
    "SynchronizeResponse",
    "UploadSyncResponse",
]
