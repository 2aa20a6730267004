from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from domain.models import Currency, Session
from domain.repositories import SessionRepository

from .postgres_support import cursor

_COLUMNS = "id, name, currency, created_at, finalized_at, chip_entry_started_at, club_id"


class PostgresSessionRepository(SessionRepository):
    """
    Postgres-backed implementation of `SessionRepository`.

    The stage-transition writes are conditional (`... IS NULL`), which makes
    each transition apply at most once even with several clients writing.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _ensure_table(self) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    currency TEXT NOT NULL DEFAULT 'USD',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    finalized_at TIMESTAMPTZ,
                    club_id TEXT
                )
                """
            )
            cur.execute(
                "ALTER TABLE sessions ADD COLUMN IF NOT EXISTS chip_entry_started_at TIMESTAMPTZ"
            )

    @staticmethod
    def _to_domain(row: tuple) -> Session:
        return Session(
            id=str(row[0]),
            name=row[1],
            currency=Currency(row[2]),
            created_at=row[3],
            finalized_at=row[4],
            chip_entry_started_at=row[5],
            club_id=row[6],
        )

    def get_session(self, session_id: str) -> Optional[Session]:
        with cursor(self._db_params) as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM sessions WHERE id = %s", (session_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def list_sessions(self, club_id: Optional[str] = None) -> List[Session]:
        with cursor(self._db_params) as cur:
            if club_id is None:
                cur.execute(f"SELECT {_COLUMNS} FROM sessions ORDER BY created_at DESC")
            else:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM sessions WHERE club_id = %s ORDER BY created_at DESC",
                    (club_id,),
                )
            return [self._to_domain(row) for row in cur.fetchall()]

    def add_session(self, session: Session) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                f"INSERT INTO sessions ({_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s)",
                (
                    session.id,
                    session.name,
                    Currency(session.currency).value,
                    session.created_at,
                    session.finalized_at,
                    session.chip_entry_started_at,
                    session.club_id,
                ),
            )

    def mark_chip_entry_started(self, session_id: str, started_at: datetime) -> bool:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                UPDATE sessions
                SET chip_entry_started_at = %s
                WHERE id = %s AND chip_entry_started_at IS NULL
                """,
                (started_at, session_id),
            )
            return cur.rowcount == 1

    def mark_finalized(self, session_id: str, finalized_at: datetime) -> bool:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                UPDATE sessions
                SET finalized_at = %s
                WHERE id = %s AND finalized_at IS NULL
                """,
                (finalized_at, session_id),
            )
            return cur.rowcount == 1
