"""Pydantic schemas for synchronization endpoints."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from common.types import ClientFileReport


class FileSyncRequest(BaseModel):
    """One file the client holds, with the state it last saw on the server."""
    file_id: str = Field(..., min_length=1)
    last_updated: datetime
    checksum: Optional[str] = None

    def to_report(self) -> ClientFileReport:
        return ClientFileReport(
            file_id=self.file_id,
            last_updated=self.last_updated,
            checksum=self.checksum,
        )


class FileToUploadResponse(BaseModel):
    file_id: str
    file_name: str


class SyncEvaluationData(BaseModel):
    synchronization_id: str
    files_to_upload: List[FileToUploadResponse]


class SynchronizeResponse(BaseModel):
    """Response model for sync evaluation. data is None when nothing is owed."""
    status: bool = True
    message: str
    data: Optional[SyncEvaluationData] = None


class SyncFulfillmentData(BaseModel):
    completed: bool
    synchronized_files: List[str]
    pending_files: List[FileToUploadResponse] = []


class UploadSyncResponse(BaseModel):
    """Response model for sync fulfillment."""
    status: bool = True
    message: str
    data: SyncFulfillmentData


class IncompleteSyncResponse(BaseModel):
    synchronization_id: str
    files_to_update: Dict[str, str]
    created_at: datetime
    last_updated: datetime


class IncompleteSyncListResponse(BaseModel):
    status: bool = True
    message: str
    data: List[IncompleteSyncResponse]
