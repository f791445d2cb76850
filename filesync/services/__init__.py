"""Service layer for business logic."""

from filesync.services.file_service import FileService
from filesync.services.sync_service import SyncService

__all__ = [
    "FileService",
    "SyncService",
]
