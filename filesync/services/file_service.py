"""File service: single-file storage, archive ingestion and update-by-diff."""

import io
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple

from common.checksum import digest, digest_file
from common.logging_config import get_logger
from common.types import (
    ArchiveUpdate,
    DirectoryDiff,
    FilePage,
    FileRecord,
    FileUpdate,
    IngestedFile,
)
from filesync.archive import extract, scratch_directory
from filesync.blob_store import BlobStore
from filesync.differ import diff, list_relative_files
from filesync.exceptions import ArchiveFormatError, FileRecordNotFoundError, ValidationError
from filesync.repositories.file_repository import FileRepository
from filesync.result import as_result
from filesync.service_locator import get_blob_store
from filesync.utils import (
    generate_uuid,
    guess_content_type,
    utcnow,
    validate_file_id,
    validate_upload,
)

logger = get_logger(__name__)


class FileService:
    def __init__(self, blob_store: Optional[BlobStore] = None):
        self.file_repo = FileRepository()
        self.blob_store = blob_store if blob_store is not None else get_blob_store()

    @as_result
    async def upload_file(
        self,
        owner_id: str,
        file_name: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> FileRecord:
        """
        Store a single non-archive file as a new record.

        Raises:
            ValidationError: If the payload is empty, too large or a zip file
        """
        validate_upload(file_name, len(data), archive=False)

        now = utcnow()
        record = FileRecord(
            file_id=generate_uuid(),
            file_name=file_name,
            content_type=content_type or guess_content_type(file_name),
            size=len(data),
            checksum=digest(data),
            upload_date=now,
            last_updated=now,
            owner_id=owner_id,
        )

        self.blob_store.write_bytes(record.file_id, data)
        self.file_repo.insert_one(record)

        logger.info(f"File uploaded [file_id={record.file_id}] size={record.size}")
        return record

    @as_result
    async def update_file(
        self,
        owner_id: str,
        file_id: str,
        file_name: str,
        data: bytes,
    ) -> FileRecord:
        """
        Replace the content of an existing non-archive file.

        Raises:
            ValidationError: If the payload is invalid
            FileRecordNotFoundError: If the owner has no such file
        """
        validate_file_id(file_id)
        validate_upload(file_name, len(data), archive=False)

        record = self.file_repo.find_by_id(owner_id, file_id)
        if record is None:
            raise FileRecordNotFoundError("File not found.")

        update = FileUpdate(
            file_name=file_name,
            size=len(data),
            checksum=digest(data),
            last_updated=utcnow(),
        )
        self.blob_store.write_bytes(file_id, data)
        self.file_repo.update_fields(owner_id, file_id, update)

        logger.info(f"File updated [file_id={file_id}] size={update.size}")
        return self.file_repo.find_by_id(owner_id, file_id)

    @as_result
    async def ingest_archive(
        self,
        owner_id: str,
        archive_name: str,
        archive_stream: BinaryIO,
        archive_size: int,
    ) -> List[IngestedFile]:
        """
        Store every file inside an archive as an independent new record.

        The whole archive is extracted before any blob is copied, so a broken
        archive creates nothing. All records are inserted in one batch; blobs
        copied before a failed insert are left in place.

        Raises:
            ValidationError: If the upload is not an acceptable zip archive
        """
        validate_upload(archive_name, archive_size, archive=True)

        with scratch_directory("ingest") as scratch:
            extract(archive_stream, scratch)

            records = []
            for relative in sorted(list_relative_files(scratch)):
                records.append(self._store_extracted_file(owner_id, scratch / relative))

        self.file_repo.insert_many(records)

        logger.info(f"Archive ingested [owner_id={owner_id}] files={len(records)}")
        return [
            IngestedFile(file_id=record.file_id, file_name=record.file_name, checksum=record.checksum)
            for record in records
        ]

    @as_result
    async def update_archive(
        self,
        owner_id: str,
        file_id: str,
        archive_name: str,
        archive_data: bytes,
    ) -> ArchiveUpdate:
        """
        Replace a stored archive only if its contents changed.

        Both archives are extracted side by side and compared file by file.
        When the file id is unknown, or its blob is missing, the upload is
        stored under that id as a new file.

        Raises:
            ValidationError: If the upload is not an acceptable zip archive
            ArchiveFormatError: If either archive cannot be read
        """
        validate_file_id(file_id)
        validate_upload(archive_name, len(archive_data), archive=True)

        record = self.file_repo.find_by_id(owner_id, file_id)
        if record is None or not self.blob_store.exists(file_id):
            return self._add_archive(owner_id, file_id, archive_name, archive_data, record)

        changes = self._diff_against_stored(file_id, archive_data)
        if not changes.has_changes:
            logger.info(f"Archive update is a no-op [file_id={file_id}]")
            return ArchiveUpdate(changed=False, diff=changes)

        update = FileUpdate(
            file_name=archive_name,
            size=len(archive_data),
            checksum=digest(archive_data),
            last_updated=utcnow(),
        )
        self.blob_store.write_bytes(file_id, archive_data)
        self.file_repo.update_fields(owner_id, file_id, update)

        logger.info(
            f"Archive updated [file_id={file_id}] added={len(changes.added)} "
            f"deleted={len(changes.deleted)} modified={len(changes.modified)}"
        )
        return ArchiveUpdate(
            changed=True,
            diff=changes,
            record=self.file_repo.find_by_id(owner_id, file_id),
        )

    @as_result
    async def list_files(self, owner_id: str, page: int = 1, page_size: int = 10) -> FilePage:
        if page < 1 or page_size < 1:
            raise ValidationError("Page and page_size must be greater than zero.")

        files = self.file_repo.find_by_owner(owner_id, skip=(page - 1) * page_size, limit=page_size)
        total = self.file_repo.count_by_owner(owner_id)
        return FilePage(files=files, page=page, page_size=page_size, total_files=total)

    @as_result
    async def get_file(self, owner_id: str, file_id: str) -> FileRecord:
        return self._require_record(owner_id, file_id)

    @as_result
    async def get_checksum(self, owner_id: str, file_id: str) -> Tuple[str, Optional[str]]:
        record = self._require_record(owner_id, file_id)
        return record.file_id, record.checksum

    @as_result
    async def open_download(self, owner_id: str, file_id: str) -> Tuple[FileRecord, BinaryIO]:
        """
        Returns:
            The record and an open stream over its content; the caller closes it
        """
        record = self._require_record(owner_id, file_id)
        try:
            stream = self.blob_store.read(file_id)
        except FileNotFoundError:
            raise FileRecordNotFoundError("File not found on server.")
        return record, stream

    @as_result
    async def delete_file(self, owner_id: str, file_id: str) -> str:
        """
        Delete the blob, then the record.
        """
        self._require_record(owner_id, file_id)
        self.blob_store.delete(file_id)
        self.file_repo.delete(owner_id, file_id)
        return file_id

    def _require_record(self, owner_id: str, file_id: str) -> FileRecord:
        record = self.file_repo.find_by_id(owner_id, file_id)
        if record is None:
            raise FileRecordNotFoundError("File not found.")
        return record

    def _store_extracted_file(self, owner_id: str, path: Path) -> FileRecord:
        now = utcnow()
        file_id = generate_uuid()
        checksum = digest_file(path)
        with open(path, "rb") as source:
            size = self.blob_store.write(file_id, source)

        return FileRecord(
            file_id=file_id,
            file_name=path.name,
            content_type=guess_content_type(path.name),
            size=size,
            checksum=checksum,
            upload_date=now,
            last_updated=now,
            owner_id=owner_id,
        )

    def _diff_against_stored(self, file_id: str, archive_data: bytes) -> DirectoryDiff:
        with scratch_directory(f"new_{file_id}") as new_tree, \
                scratch_directory(f"previous_{file_id}") as previous_tree:
            extract(io.BytesIO(archive_data), new_tree)

            with self.blob_store.read(file_id) as stored:
                try:
                    extract(stored, previous_tree)
                except ArchiveFormatError as e:
                    raise ArchiveFormatError("Stored file is not a valid zip archive.") from e

            return diff(new_tree, previous_tree)

    def _add_archive(
        self,
        owner_id: str,
        file_id: str,
        archive_name: str,
        archive_data: bytes,
        existing: Optional[FileRecord],
    ) -> ArchiveUpdate:
        # Reject unreadable archives before anything is stored.
        with scratch_directory(f"new_{file_id}") as new_tree:
            extract(io.BytesIO(archive_data), new_tree)

        now = utcnow()
        record = FileRecord(
            file_id=file_id,
            file_name=archive_name,
            content_type=guess_content_type(archive_name),
            size=len(archive_data),
            checksum=digest(archive_data),
            upload_date=existing.upload_date if existing else now,
            last_updated=now,
            owner_id=owner_id,
            extra_metadata=existing.extra_metadata if existing else {},
        )

        if not self.file_repo.upsert(record):
            raise FileRecordNotFoundError("File not found.")

        try:
            self.blob_store.write_bytes(file_id, archive_data)
        except OSError:
            if existing is None:
                self.file_repo.delete(owner_id, file_id)
            raise

        logger.info(f"Archive added [file_id={file_id}] size={record.size}")
        return ArchiveUpdate(
            changed=True,
            diff=DirectoryDiff(added=[archive_name], deleted=[], modified=[]),
            record=self.file_repo.find_by_id(owner_id, file_id),
        )
