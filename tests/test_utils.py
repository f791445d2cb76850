"""Tests for upload validation, timestamps, results and log masking."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from common.logging_config import SensitiveDataFilter, setup_logging
from filesync.exceptions import ErrorKind, PayloadTooLargeError, ValidationError
from filesync.result import as_result
from filesync.utils import (
    format_timestamp,
    guess_content_type,
    parse_timestamp,
    validate_file_id,
    validate_upload,
)


class TestValidateUpload:
    def test_accepts_zip_for_archive_endpoint(self):
        validate_upload("bundle.ZIP", 10, archive=True)

    @pytest.mark.parametrize("file_name, size, archive, message", [
        (None, 10, False, "No file uploaded."),
        ("a.txt", 0, False, "No file uploaded."),
        ("a.txt", 10, True, "Only zip files are allowed."),
        ("a.zip", 10, False, "Zip files are not allowed for this endpoint."),
    ])
    def test_rejections(self, file_name, size, archive, message):
        with pytest.raises(ValidationError, match=message):
            validate_upload(file_name, size, archive)

    def test_size_limit(self, monkeypatch):
        monkeypatch.setattr("filesync.config.MAX_UPLOAD_BYTES", 2 * 1024 * 1024)

        with pytest.raises(PayloadTooLargeError, match="2 MB"):
            validate_upload("a.bin", 2 * 1024 * 1024 + 1, archive=False)


@pytest.mark.parametrize("file_id", ["", "   ", "../x", "a/b", "a\\b", ".."])
def test_validate_file_id_rejects(file_id):
    with pytest.raises(ValidationError):
        validate_file_id(file_id)


def test_timestamps_sort_as_strings():
    base = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    later = base + timedelta(microseconds=1)

    assert format_timestamp(base) < format_timestamp(later)
    assert parse_timestamp(format_timestamp(later)) == later


def test_naive_timestamps_are_utc():
    naive = datetime(2024, 3, 1, 12, 0)
    offset = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    assert format_timestamp(naive) == format_timestamp(offset)


def test_guess_content_type():
    assert guess_content_type("photo.png") == "image/png"
    assert guess_content_type("no-extension") == "application/octet-stream"


class TestAsResult:
    @pytest.mark.asyncio
    async def test_os_error_becomes_storage_error(self):
        @as_result
        async def failing():
            raise PermissionError("/srv/blobs/abc.blob")

        result = await failing()

        assert result.kind == ErrorKind.IO
        assert "/srv" not in result.message

    @pytest.mark.asyncio
    async def test_domain_error_kept(self):
        @as_result
        async def failing():
            raise ValidationError("bad input")

        result = await failing()

        assert result.kind == ErrorKind.VALIDATION
        with pytest.raises(ValidationError):
            result.unwrap()


def test_sensitive_data_filter_masks_tokens():
    record = logging.LogRecord("filesync", logging.INFO, __file__, 1, "authorization=Bearer-abc token=xyz", None, None)

    SensitiveDataFilter().filter(record)

    assert "Bearer-abc" not in record.getMessage()
    assert "xyz" not in record.getMessage()
    assert "***MASKED***" in record.msg


def test_setup_logging_is_idempotent():
    first = setup_logging("filesync-test", "DEBUG")
    second = setup_logging("filesync-test", "DEBUG")

    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG
