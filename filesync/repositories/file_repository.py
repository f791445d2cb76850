"""File record repository for database operations."""

import json
import sqlite3
from typing import List, Optional

from common.logging_config import get_logger
from common.types import FileRecord, FileUpdate, PendingUpsert
from filesync.database import get_db_connection
from filesync.utils import format_timestamp, guess_content_type, parse_timestamp

logger = get_logger(__name__)

_COLUMNS = (
    "file_id, owner_id, file_name, content_type, size, checksum, "
    "upload_date, last_updated, extra_metadata"
)


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        file_name=row["file_name"],
        content_type=row["content_type"],
        size=row["size"],
        checksum=row["checksum"],
        upload_date=parse_timestamp(row["upload_date"]),
        last_updated=parse_timestamp(row["last_updated"]),
        owner_id=row["owner_id"],
        extra_metadata=json.loads(row["extra_metadata"] or "{}"),
    )


def _record_params(record: FileRecord) -> tuple:
    return (
        record.file_id,
        record.owner_id,
        record.file_name,
        record.content_type,
        record.size,
        record.checksum,
        format_timestamp(record.upload_date),
        format_timestamp(record.last_updated),
        json.dumps(record.extra_metadata or {}),
    )


class FileRepository:
    """
    Owner-scoped access to the files table. Every lookup and mutation filters
    on owner_id as well as file_id.
    """

    @staticmethod
    def insert_one(record: FileRecord) -> FileRecord:
        with get_db_connection() as conn:
            conn.execute(
                f"INSERT INTO files ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _record_params(record)
            )
            conn.commit()
        return record

    @staticmethod
    def insert_many(records: List[FileRecord]) -> List[FileRecord]:
        """
        Insert all records in one transaction; nothing is inserted if any row
        fails.
        """
        if not records:
            return records

        with get_db_connection() as conn:
            try:
                conn.executemany(
                    f"INSERT INTO files ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [_record_params(record) for record in records]
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise
        return records

    @staticmethod
    def find_by_id(owner_id: str, file_id: str) -> Optional[FileRecord]:
        with get_db_connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM files WHERE file_id = ? AND owner_id = ?",
                (file_id, owner_id)
            ).fetchone()

        if row is None:
            return None
        return _row_to_record(row)

    @staticmethod
    def find_owner(file_id: str) -> Optional[str]:
        """
        Returns:
            The owner_id holding file_id, or None if the id is free
        """
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT owner_id FROM files WHERE file_id = ?",
                (file_id,)
            ).fetchone()
        return row["owner_id"] if row else None

    @staticmethod
    def find_by_owner(owner_id: str, skip: int = 0, limit: int = 10) -> List[FileRecord]:
        with get_db_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM files
                WHERE owner_id = ?
                ORDER BY upload_date, file_id
                LIMIT ? OFFSET ?
                """,
                (owner_id, limit, skip)
            ).fetchall()

        return [_row_to_record(row) for row in rows]

    @staticmethod
    def count_by_owner(owner_id: str) -> int:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM files WHERE owner_id = ?",
                (owner_id,)
            ).fetchone()
        return row["total"]

    @staticmethod
    def update_fields(owner_id: str, file_id: str, update: FileUpdate) -> bool:
        """
        Write only the fields set on update. last_updated never moves
        backwards.

        Returns:
            True if the owner's record was found and updated
        """
        if update.is_empty():
            return False

        assignments = []
        params = []
        if update.file_name is not None:
            assignments.append("file_name = ?")
            params.append(update.file_name)
        if update.size is not None:
            assignments.append("size = ?")
            params.append(update.size)
        if update.checksum is not None:
            assignments.append("checksum = ?")
            params.append(update.checksum)
        if update.last_updated is not None:
            assignments.append("last_updated = MAX(last_updated, ?)")
            params.append(format_timestamp(update.last_updated))

        with get_db_connection() as conn:
            cursor = conn.execute(
                f"UPDATE files SET {', '.join(assignments)} WHERE file_id = ? AND owner_id = ?",
                (*params, file_id, owner_id)
            )
            conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def upsert(record: FileRecord) -> bool:
        """
        Insert record, or replace the mutable fields of an existing record with
        the same id. upload_date of an existing record is kept.

        Returns:
            False if the id already belongs to a different owner
        """
        with get_db_connection() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO files ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(file_id) DO UPDATE SET
                    file_name = excluded.file_name,
                    content_type = excluded.content_type,
                    size = excluded.size,
                    checksum = excluded.checksum,
                    last_updated = MAX(files.last_updated, excluded.last_updated)
                WHERE files.owner_id = excluded.owner_id
                """,
                _record_params(record)
            )
            conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def bulk_upsert(items: List[PendingUpsert]) -> int:
        """
        Apply a batch of size/checksum updates in one transaction.

        Records that no longer exist are recreated from the pending name, so a
        deletion racing with a sync does not fail the batch. Ids owned by a
        different owner are left untouched.

        Returns:
            Number of records written
        """
        if not items:
            return 0

        params = []
        for item in items:
            update = item.update
            if update.size is None or update.checksum is None or update.last_updated is None:
                raise ValueError("Bulk upserts need size, checksum and last_updated")
            timestamp = format_timestamp(update.last_updated)
            params.append((
                item.file_id,
                item.owner_id,
                update.file_name or item.file_name,
                guess_content_type(item.file_name),
                update.size,
                update.checksum,
                timestamp,
                timestamp,
                "{}",
                update.file_name,
            ))

        with get_db_connection() as conn:
            try:
                cursor = conn.executemany(
                    f"""
                    INSERT INTO files ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(file_id) DO UPDATE SET
                        file_name = COALESCE(?, files.file_name),
                        size = excluded.size,
                        checksum = excluded.checksum,
                        last_updated = MAX(files.last_updated, excluded.last_updated)
                    WHERE files.owner_id = excluded.owner_id
                    """,
                    params
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                logger.error(f"Bulk upsert of {len(items)} records rolled back", exc_info=True)
                raise

        written = cursor.rowcount
        if written < len(items):
            logger.warning(f"Bulk upsert skipped {len(items) - written} records owned by another owner")
        return written

    @staticmethod
    def delete(owner_id: str, file_id: str) -> bool:
        with get_db_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM files WHERE file_id = ? AND owner_id = ?",
                (file_id, owner_id)
            )
            conn.commit()
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"File record deleted [file_id={file_id}]")
        return deleted
