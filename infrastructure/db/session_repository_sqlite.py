from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from domain.models import Currency, Session
from domain.repositories import SessionRepository

from .sqlite_support import connect, from_db_timestamp, has_column, to_db_timestamp

_COLUMNS = "id, name, currency, created_at, finalized_at, chip_entry_started_at, club_id"


class SqliteSessionRepository(SessionRepository):
    """
    SQLite-backed implementation of `SessionRepository`.

    This repository owns the `sessions` table. It is self-initialising:
    the table is created if needed, and older databases that predate chip
    entry get the `chip_entry_started_at` column added.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _ensure_table(self) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    currency TEXT NOT NULL DEFAULT 'USD',
                    created_at TEXT NOT NULL,
                    finalized_at TEXT,
                    club_id TEXT
                )
                """
            )
            if not has_column(conn, "sessions", "chip_entry_started_at"):
                conn.execute("ALTER TABLE sessions ADD COLUMN chip_entry_started_at TEXT")

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Session:
        return Session(
            id=str(row["id"]),
            name=row["name"],
            currency=Currency(row["currency"]),
            created_at=from_db_timestamp(row["created_at"]),
            finalized_at=from_db_timestamp(row["finalized_at"]),
            chip_entry_started_at=from_db_timestamp(row["chip_entry_started_at"]),
            club_id=row["club_id"],
        )

    def get_session(self, session_id: str) -> Optional[Session]:
        with connect(self._db_path) as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def list_sessions(self, club_id: Optional[str] = None) -> List[Session]:
        with connect(self._db_path) as conn:
            if club_id is None:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM sessions ORDER BY created_at DESC"
                ).fetchall()
            else:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM sessions WHERE club_id = ? ORDER BY created_at DESC",
                    (club_id,),
                ).fetchall()
            return [self._to_domain(row) for row in rows]

    def add_session(self, session: Session) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                f"INSERT INTO sessions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.name,
                    Currency(session.currency).value,
                    to_db_timestamp(session.created_at),
                    to_db_timestamp(session.finalized_at),
                    to_db_timestamp(session.chip_entry_started_at),
                    session.club_id,
                ),
            )

    def mark_chip_entry_started(self, session_id: str, started_at: datetime) -> bool:
        with connect(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE sessions
                SET chip_entry_started_at = ?
                WHERE id = ? AND chip_entry_started_at IS NULL
                """,
                (to_db_timestamp(started_at), session_id),
            )
            return cur.rowcount == 1

    def mark_finalized(self, session_id: str, finalized_at: datetime) -> bool:
        with connect(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE sessions
                SET finalized_at = ?
                WHERE id = ? AND finalized_at IS NULL
                """,
                (to_db_timestamp(finalized_at), session_id),
            )
            return cur.rowcount == 1
