"""Service locator for the storage backends shared by request handlers."""

from typing import Optional

from filesync.blob_store import BlobStore, LocalBlobStore

_blob_store: Optional[BlobStore] = None


def set_blob_store(store: BlobStore):
    """Set global blob store instance"""
    global _blob_store
    _blob_store = store


def get_blob_store() -> BlobStore:
    """
    Get global blob store instance, creating the configured local store on
    first use.
    """
    global _blob_store
    if _blob_store is None:
        from filesync.config import BLOB_STORAGE_PATH
        _blob_store = LocalBlobStore(BLOB_STORAGE_PATH)
    return _blob_store
