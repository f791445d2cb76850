"""Pydantic schemas for file operation endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from common.types import FileRecord


class FileMetadataResponse(BaseModel):
    """Metadata of one stored file."""
    file_id: str
    file_name: str
    content_type: str
    size: int
    checksum: Optional[str] = None
    upload_date: datetime
    last_updated: datetime
    extra_metadata: Dict[str, Any] = {}

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileMetadataResponse":
        return cls(
            file_id=record.file_id,
            file_name=record.file_name,
            content_type=record.content_type,
            size=record.size,
            checksum=record.checksum,
            upload_date=record.upload_date,
            last_updated=record.last_updated,
            extra_metadata=record.extra_metadata,
        )


class UploadFileResponse(BaseModel):
    """Response model for single-file upload and update."""
    status: bool = True
    message: str
    data: FileMetadataResponse


class IngestedFileResponse(BaseModel):
    file_id: str
    file_name: str
    checksum: str


class UploadArchiveResponse(BaseModel):
    """Response model for archive ingestion."""
    status: bool = True
    message: str
    data: List[IngestedFileResponse]


class Pagination(BaseModel):
    page: int
    page_size: int
    total_files: int
    total_pages: int


class ListFilesResponse(BaseModel):
    """Response model for paginated file listing."""
    status: bool = True
    data: List[FileMetadataResponse]
    pagination: Pagination


class ChecksumData(BaseModel):
    file_id: str
    checksum: Optional[str] = None


class ChecksumResponse(BaseModel):
    status: bool = True
    message: str = "Checksum retrieved."
    data: ChecksumData


class ArchiveChanges(BaseModel):
    added: List[str]
    deleted: List[str]
    modified: List[str]


class ArchiveUpdateData(BaseModel):
    changed: bool
    changes: ArchiveChanges
    metadata: Optional[FileMetadataResponse] = None


class ArchiveUpdateResponse(BaseModel):
    """Response model for update-by-diff."""
    status: bool = True
    message: str
    data: ArchiveUpdateData
