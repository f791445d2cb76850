"""Project-wide constants (upload limits, hashing piece size, defaults)."""

MAX_UPLOAD_SIZE_BYTES: int = 50 * 1024 * 1024  # 50 MiB per uploaded payload
HASH_PIECE_SIZE_BYTES: int = 64 * 1024
DEFAULT_CONTENT_TYPE: str = "application/octet-stream"
DEFAULT_BLOB_STORAGE_PATH: str = "/app/data/blobs"
ARCHIVE_EXTENSION: str = ".zip"
