"""Shared data type definitions (FileRecord, SyncSession, FileUpdate, etc.)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class FileRecord:
    """
    Metadata for one stored file.

    file_id and owner_id never change once assigned; size and checksum always
    describe the blob most recently committed under file_id.
    """
    file_id: str
    file_name: str
    content_type: str
    size: int
    checksum: Optional[str]
    upload_date: datetime
    last_updated: datetime
    owner_id: str
    extra_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncSession:
    """
    Server-side record of the files a client still owes the server.

    completed is True exactly when pending is empty; version increases on
    every persisted change.
    """
    session_id: str
    owner_id: str
    pending: Dict[str, str]
    completed: bool
    created_at: datetime
    last_updated: datetime
    completed_at: Optional[datetime] = None
    version: int = 1


@dataclass(frozen=True)
class FileUpdate:
    """
    Field-scoped change to a FileRecord. Fields left as None are not written.
    """
    size: Optional[int] = None
    checksum: Optional[str] = None
    last_updated: Optional[datetime] = None
    file_name: Optional[str] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.size, self.checksum, self.last_updated, self.file_name)
        )


@dataclass(frozen=True)
class PendingUpsert:
    """
    One entry of a bulk metadata write: update the owner's record, or recreate
    it from the given name when it no longer exists.
    """
    file_id: str
    owner_id: str
    file_name: str
    update: FileUpdate


@dataclass(frozen=True)
class ClientFileReport:
    """
    A file the client claims to hold, as sent in a sync request.
    """
    file_id: str
    last_updated: datetime
    checksum: Optional[str] = None


@dataclass(frozen=True)
class FileToUpload:
    file_id: str
    file_name: str


@dataclass(frozen=True)
class SyncEvaluation:
    """
    Outcome of evaluating a sync request. session_id is None when the client
    is already up to date.
    """
    session_id: Optional[str]
    files_to_upload: List[FileToUpload]

    @property
    def up_to_date(self) -> bool:
        return self.session_id is None


@dataclass(frozen=True)
class SyncFulfillment:
    completed: bool
    synchronized_files: List[str]
    pending_files: List[FileToUpload]
    already_completed: bool = False


@dataclass(frozen=True)
class DirectoryDiff:
    """
    Relative paths added, deleted and modified between two directory trees.
    """
    added: List[str]
    deleted: List[str]
    modified: List[str]

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.deleted or self.modified)


@dataclass(frozen=True)
class ArchiveEntry:
    path: str
    size: int


@dataclass(frozen=True)
class ExtractResult:
    files: List[str]
    total_bytes: int


@dataclass(frozen=True)
class IngestedFile:
    file_id: str
    file_name: str
    checksum: str


@dataclass(frozen=True)
class ArchiveUpdate:
    """
    Result of replacing a stored archive. record is None when nothing changed.
    """
    changed: bool
    diff: DirectoryDiff
    record: Optional[FileRecord] = None


@dataclass(frozen=True)
class FilePage:
    files: List[FileRecord]
    page: int
    page_size: int
    total_files: int

    @property
    def total_pages(self) -> int:
        if self.total_files == 0:
            return 0
        return -(-self.total_files // self.page_size)
