"""Repository layer for data access."""

from filesync.repositories.file_repository import FileRepository
from filesync.repositories.sync_repository import SyncSessionRepository

__all__ = [
    "FileRepository",
    "SyncSessionRepository",
]
