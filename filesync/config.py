"""Configuration settings for the file sync server."""

import os

from common.constants import DEFAULT_BLOB_STORAGE_PATH, MAX_UPLOAD_SIZE_BYTES


DATABASE_PATH = os.environ.get("FILESYNC_DATABASE_PATH", "/app/data/metadata.db")

BLOB_STORAGE_PATH = os.environ.get("FILESYNC_BLOB_STORAGE_PATH", DEFAULT_BLOB_STORAGE_PATH)

# None means the platform temp directory
SCRATCH_DIR = os.environ.get("FILESYNC_SCRATCH_DIR") or None

SERVER_HOST = os.environ.get("FILESYNC_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("FILESYNC_PORT", "8000"))

MAX_UPLOAD_BYTES = int(os.environ.get("FILESYNC_MAX_UPLOAD_BYTES", str(MAX_UPLOAD_SIZE_BYTES)))
