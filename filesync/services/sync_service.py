"""Sync service: evaluate client reports, track sessions, apply uploads."""

from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Set, Tuple

from common.checksum import digest_file
from common.logging_config import get_logger
from common.types import (
    ClientFileReport,
    FileRecord,
    FileToUpload,
    FileUpdate,
    PendingUpsert,
    SyncEvaluation,
    SyncFulfillment,
    SyncSession,
)
from filesync.archive import extract, scratch_directory
from filesync.blob_store import BlobStore
from filesync.differ import list_relative_files
from filesync.exceptions import (
    PersistenceConflictError,
    SyncSessionNotFoundError,
    ValidationError,
)
from filesync.repositories.file_repository import FileRepository
from filesync.repositories.sync_repository import SyncSessionRepository
from filesync.result import as_result
from filesync.service_locator import get_blob_store
from filesync.utils import ensure_utc, generate_uuid, utcnow

logger = get_logger(__name__)


def deduplicate_reports(reports: Iterable[ClientFileReport]) -> List[ClientFileReport]:
    """
    Keep the first report for each file id, preserving order.
    """
    seen: Set[str] = set()
    distinct = []
    for report in reports:
        if report.file_id in seen:
            continue
        seen.add(report.file_id)
        distinct.append(report)
    return distinct


def needs_upload(record: FileRecord, report: ClientFileReport) -> bool:
    """
    Decide whether the client must upload its copy of a file.

    report.last_updated is the server timestamp the client last observed for
    the file, so a newer server record means the client is out of step.
    Checksums only count when both sides have one.
    """
    if record.last_updated > ensure_utc(report.last_updated):
        return True
    if record.checksum is not None and report.checksum is not None:
        return record.checksum != report.checksum
    return False


def build_pending_map(files: List[FileToUpload]) -> Dict[str, str]:
    """
    Map file names to ids. When two flagged files share a display name the
    later one wins.
    """
    pending: Dict[str, str] = {}
    for item in files:
        previous = pending.get(item.file_name)
        if previous is not None and previous != item.file_id:
            logger.warning(
                f"Display name collision in sync session: '{item.file_name}' "
                f"maps to {previous} and {item.file_id}; keeping {item.file_id}"
            )
        pending[item.file_name] = item.file_id
    return pending


class SyncService:
    def __init__(self, blob_store: Optional[BlobStore] = None):
        self.file_repo = FileRepository()
        self.session_repo = SyncSessionRepository()
        self.blob_store = blob_store if blob_store is not None else get_blob_store()

    @as_result
    async def evaluate_sync_request(
        self,
        owner_id: str,
        reports: List[ClientFileReport],
    ) -> SyncEvaluation:
        """
        Compare the client's view of its files with the server records and
        open a sync session for the ones that need uploading.

        No session is created when nothing needs uploading.

        Raises:
            ValidationError: If no reports were supplied
        """
        if not reports:
            raise ValidationError("No files provided for synchronization.")

        files_to_upload = []
        for report in deduplicate_reports(reports):
            record = self.file_repo.find_by_id(owner_id, report.file_id)
            if record is None:
                continue
            if needs_upload(record, report):
                files_to_upload.append(FileToUpload(file_id=record.file_id, file_name=record.file_name))

        if not files_to_upload:
            logger.info(f"Sync evaluation found nothing to upload [owner_id={owner_id}]")
            return SyncEvaluation(session_id=None, files_to_upload=[])

        now = utcnow()
        session = SyncSession(
            session_id=generate_uuid(),
            owner_id=owner_id,
            pending=build_pending_map(files_to_upload),
            completed=False,
            created_at=now,
            last_updated=now,
        )
        self.session_repo.insert_one(session)

        return SyncEvaluation(session_id=session.session_id, files_to_upload=files_to_upload)

    @as_result
    async def fulfill_sync(
        self,
        session_id: str,
        owner_id: str,
        archive_stream: BinaryIO,
    ) -> SyncFulfillment:
        """
        Apply an uploaded archive to an active sync session.

        Files whose base name is pending overwrite the mapped blob and have
        their metadata refreshed in one batch. The session is then either
        completed or narrowed to the names still missing.

        Raises:
            SyncSessionNotFoundError: If the session is unknown for this owner
                or already completed
            ArchiveFormatError: If the upload is not a zip archive
        """
        session = self.session_repo.find_active(session_id, owner_id)
        if session is None:
            raise SyncSessionNotFoundError("Synchronization ID not found.")

        with scratch_directory("sync") as scratch:
            extract(archive_stream, scratch)
            upserts, synchronized, forfeited = self._store_matching_files(session, scratch)

        # File metadata is committed before the session advances.
        self.file_repo.bulk_upsert(upserts)

        return self._record_progress(session, synchronized, forfeited)

    @as_result
    async def list_incomplete_sessions(self, owner_id: str) -> List[SyncSession]:
        return self.session_repo.find_incomplete_by_owner(owner_id)

    def _store_matching_files(
        self,
        session: SyncSession,
        root: Path,
    ) -> Tuple[List[PendingUpsert], List[str], List[str]]:
        """
        Write the blob of every pending file found in the extracted tree.

        A pending id that now belongs to another owner is never written; its
        name is returned in the forfeited list instead.
        """
        upserts = []
        synchronized = []
        forfeited = []

        for relative in sorted(list_relative_files(root)):
            file_name = Path(relative).name
            file_id = session.pending.get(file_name)
            if file_id is None:
                continue
            if file_name in synchronized or file_name in forfeited:
                logger.debug(f"Ignoring duplicate upload of '{file_name}' at {relative}")
                continue

            owner_id = self.file_repo.find_owner(file_id)
            if owner_id is not None and owner_id != session.owner_id:
                logger.warning(
                    f"Pending file id now belongs to another owner, dropping '{file_name}' "
                    f"[session_id={session.session_id}] [file_id={file_id}]"
                )
                forfeited.append(file_name)
                continue

            path = root / relative
            checksum = digest_file(path)
            with open(path, "rb") as source:
                size = self.blob_store.write(file_id, source)

            upserts.append(PendingUpsert(
                file_id=file_id,
                owner_id=session.owner_id,
                file_name=file_name,
                update=FileUpdate(size=size, checksum=checksum, last_updated=utcnow()),
            ))
            synchronized.append(file_name)

        return upserts, synchronized, forfeited

    def _record_progress(
        self,
        session: SyncSession,
        synchronized: List[str],
        forfeited: Iterable[str] = (),
    ) -> SyncFulfillment:
        """
        Persist the pending/completed transition with one retry on a lost
        optimistic write.
        """
        resolved = set(synchronized) | set(forfeited)

        for attempt in range(2):
            remaining = {
                name: file_id
                for name, file_id in session.pending.items()
                if name not in resolved
            }
            now = utcnow()

            if remaining:
                written = self.session_repo.update_pending(
                    session.session_id, session.owner_id, remaining, session.version, now
                )
            else:
                written = self.session_repo.mark_completed(
                    session.session_id, session.owner_id, session.version, now
                )

            if written:
                if remaining:
                    logger.info(
                        f"Sync session progressed [session_id={session.session_id}] "
                        f"synchronized={len(synchronized)} remaining={len(remaining)}"
                    )
                return SyncFulfillment(
                    completed=not remaining,
                    synchronized_files=synchronized,
                    pending_files=[
                        FileToUpload(file_id=file_id, file_name=name)
                        for name, file_id in remaining.items()
                    ],
                )

            logger.warning(
                f"Sync session write conflict [session_id={session.session_id}] attempt={attempt + 1}"
            )
            latest = self.session_repo.find_by_id(session.session_id, session.owner_id)
            if latest is None:
                raise SyncSessionNotFoundError("Synchronization ID not found.")
            if latest.completed:
                return SyncFulfillment(
                    completed=True,
                    synchronized_files=synchronized,
                    pending_files=[],
                    already_completed=True,
                )
            session = latest

        raise PersistenceConflictError("Synchronization session is being updated concurrently; retry later.")
