"""Utility helper functions for the file sync server."""

import mimetypes
import uuid
from datetime import datetime, timezone
from typing import Optional

from common.constants import ARCHIVE_EXTENSION, DEFAULT_CONTENT_TYPE
from filesync import config
from filesync.exceptions import PayloadTooLargeError, ValidationError


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Return value as an aware UTC datetime. Naive values are taken as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Serialize a timestamp for storage.

    The fixed microsecond precision keeps string order equal to time order.
    """
    return ensure_utc(value).isoformat(timespec="microseconds")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def guess_content_type(file_name: str) -> str:
    """
    Infer a MIME type from the file extension.

    Returns:
        The guessed type, or application/octet-stream when unknown
    """
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or DEFAULT_CONTENT_TYPE


def is_archive_name(file_name: Optional[str]) -> bool:
    return bool(file_name) and file_name.lower().endswith(ARCHIVE_EXTENSION)


def validate_upload(file_name: Optional[str], size: int, archive: bool) -> None:
    """
    Check an uploaded payload before any processing.

    Args:
        file_name: Client-supplied file name
        size: Payload length in bytes
        archive: True when the endpoint expects a zip archive, False when it
            must not receive one

    Raises:
        ValidationError: If the payload is empty or has the wrong type
        PayloadTooLargeError: If the payload exceeds the upload limit
    """
    if not file_name or size == 0:
        raise ValidationError("No file uploaded.")

    if size > config.MAX_UPLOAD_BYTES:
        limit_mb = config.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise PayloadTooLargeError(f"File size exceeds the limit of {limit_mb} MB.")

    if archive and not is_archive_name(file_name):
        raise ValidationError("Only zip files are allowed.")

    if not archive and is_archive_name(file_name):
        raise ValidationError("Zip files are not allowed for this endpoint.")


def validate_file_id(file_id: Optional[str]) -> str:
    """
    Raises:
        ValidationError: If file_id is empty or could address a storage path
    """
    if not file_id or not file_id.strip():
        raise ValidationError("File ID is required.")
    if "/" in file_id or "\\" in file_id or file_id in (".", "..") or len(file_id) > 128:
        raise ValidationError("File ID is malformed.")
    return file_id
