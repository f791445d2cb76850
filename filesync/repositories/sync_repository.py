"""Sync session repository with optimistic, version-checked writes."""

import json
import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from common.logging_config import get_logger
from common.types import SyncSession
from filesync.database import get_db_connection
from filesync.utils import format_timestamp, parse_timestamp

logger = get_logger(__name__)

_COLUMNS = (
    "session_id, owner_id, pending, completed, created_at, "
    "completed_at, last_updated, version"
)


def _row_to_session(row: sqlite3.Row) -> SyncSession:
    return SyncSession(
        session_id=row["session_id"],
        owner_id=row["owner_id"],
        pending=json.loads(row["pending"]),
        completed=bool(row["completed"]),
        created_at=parse_timestamp(row["created_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
        last_updated=parse_timestamp(row["last_updated"]),
        version=row["version"],
    )


class SyncSessionRepository:
    """
    Owner-scoped access to the sync_sessions table.

    Writes to an existing session are conditional on it still being active
    and still at the version the caller read. A False return means another
    writer got there first and the caller must re-read.
    """

    @staticmethod
    def insert_one(session: SyncSession) -> SyncSession:
        with get_db_connection() as conn:
            conn.execute(
                f"INSERT INTO sync_sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.session_id,
                    session.owner_id,
                    json.dumps(session.pending),
                    int(session.completed),
                    format_timestamp(session.created_at),
                    format_timestamp(session.completed_at) if session.completed_at else None,
                    format_timestamp(session.last_updated),
                    session.version,
                )
            )
            conn.commit()
        logger.info(
            f"Sync session created [session_id={session.session_id}] pending={len(session.pending)}"
        )
        return session

    @staticmethod
    def find_by_id(session_id: str, owner_id: str) -> Optional[SyncSession]:
        with get_db_connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM sync_sessions WHERE session_id = ? AND owner_id = ?",
                (session_id, owner_id)
            ).fetchone()
        return _row_to_session(row) if row else None

    @staticmethod
    def find_active(session_id: str, owner_id: str) -> Optional[SyncSession]:
        with get_db_connection() as conn:
            row = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM sync_sessions
                WHERE session_id = ? AND owner_id = ? AND completed = 0
                """,
                (session_id, owner_id)
            ).fetchone()
        return _row_to_session(row) if row else None

    @staticmethod
    def find_incomplete_by_owner(owner_id: str) -> List[SyncSession]:
        with get_db_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM sync_sessions
                WHERE owner_id = ? AND completed = 0
                ORDER BY created_at
                """,
                (owner_id,)
            ).fetchall()
        return [_row_to_session(row) for row in rows]

    @staticmethod
    def count_by_owner(owner_id: str) -> int:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM sync_sessions WHERE owner_id = ?",
                (owner_id,)
            ).fetchone()
        return row["total"]

    @staticmethod
    def update_pending(
        session_id: str,
        owner_id: str,
        pending: Dict[str, str],
        expected_version: int,
        now: datetime,
    ) -> bool:
        if not pending:
            raise ValueError("Use mark_completed to clear the pending map")

        with get_db_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE sync_sessions
                SET pending = ?, last_updated = ?, version = version + 1
                WHERE session_id = ? AND owner_id = ? AND completed = 0 AND version = ?
                """,
                (json.dumps(pending), format_timestamp(now), session_id, owner_id, expected_version)
            )
            conn.commit()
        return cursor.rowcount == 1

    @staticmethod
    def mark_completed(
        session_id: str,
        owner_id: str,
        expected_version: int,
        now: datetime,
    ) -> bool:
        timestamp = format_timestamp(now)
        with get_db_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE sync_sessions
                SET pending = '{}', completed = 1, completed_at = ?, last_updated = ?,
                    version = version + 1
                WHERE session_id = ? AND owner_id = ? AND completed = 0 AND version = ?
                """,
                (timestamp, timestamp, session_id, owner_id, expected_version)
            )
            conn.commit()
        completed = cursor.rowcount == 1
        if completed:
            logger.info(f"Sync session completed [session_id={session_id}]")
        return completed
