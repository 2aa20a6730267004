from __future__ import annotations

import sqlite3
from typing import List

from domain.models import Player
from domain.repositories import PlayerRepository

from .sqlite_support import connect, from_db_timestamp, to_db_timestamp


class SqlitePlayerRepository(PlayerRepository):
    """
    SQLite-backed implementation of `PlayerRepository`.

    Owns the `players` table. Rows reference `sessions.id` by value only;
    deleting a session does not cascade here.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _ensure_table(self) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS players (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    profile_id TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_players_session ON players (session_id)"
            )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Player:
        return Player(
            id=str(row["id"]),
            session_id=str(row["session_id"]),
            name=row["name"],
            created_at=from_db_timestamp(row["created_at"]),
            profile_id=row["profile_id"] or None,
        )

    def list_players(self, session_id: str) -> List[Player]:
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, session_id, name, created_at, profile_id
                FROM players
                WHERE session_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (session_id,),
            ).fetchall()
            return [self._to_domain(row) for row in rows]

    def add_player(self, player: Player) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO players (id, session_id, name, created_at, profile_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    player.id,
                    player.session_id,
                    player.name,
                    to_db_timestamp(player.created_at),
                    player.profile_id,
                ),
            )

    def remove_player(self, player_id: str) -> None:
        with connect(self._db_path) as conn:
            conn.execute("DELETE FROM players WHERE id = ?", (player_id,))

    def link_profile(self, player_id: str, profile_id: str) -> bool:
        with connect(self._db_path) as conn:
            cur = conn.execute(
                """
                UPDATE players
                SET profile_id = ?
                WHERE id = ? AND profile_id IS NULL
                """,
                (profile_id, player_id),
            )
            return cur.rowcount == 1
