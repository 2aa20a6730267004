from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from domain.errors import PersistenceError


@contextmanager
def connect(db_path: str) -> Iterator[sqlite3.Connection]:
    """
    Open a connection, commit on success and always close it.

    Driver errors surface as `PersistenceError` so callers never see
    `sqlite3` types.
    """

    try:
        conn = sqlite3.connect(db_path)
    except sqlite3.Error as exc:
        raise PersistenceError(str(exc)) from exc

    conn.row_factory = sqlite3.Row
    try:
        with conn:
            yield conn
    except sqlite3.Error as exc:
        raise PersistenceError(str(exc)) from exc
    finally:
        conn.close()


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(row["name"] == column for row in rows)
