from __future__ import annotations

from typing import List

from domain.models import Player
from domain.repositories import PlayerRepository

from .postgres_support import cursor


class PostgresPlayerRepository(PlayerRepository):
    """Postgres-backed implementation of `PlayerRepository`."""

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _ensure_table(self) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS players (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    profile_id TEXT
                )
                """
            )

    @staticmethod
    def _to_domain(row: tuple) -> Player:
        return Player(
            id=str(row[0]),
            session_id=str(row[1]),
            name=row[2],
            created_at=row[3],
            profile_id=row[4] or None,
        )

    def list_players(self, session_id: str) -> List[Player]:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                SELECT id, session_id, name, created_at, profile_id
                FROM players
                WHERE session_id = %s
                ORDER BY created_at ASC
                """,
                (session_id,),
            )
            return [self._to_domain(row) for row in cur.fetchall()]

    def add_player(self, player: Player) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                INSERT INTO players (id, session_id, name, created_at, profile_id)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (player.id, player.session_id, player.name, player.created_at, player.profile_id),
            )

    def remove_player(self, player_id: str) -> None:
        with cursor(self._db_params) as cur:
            cur.execute("DELETE FROM players WHERE id = %s", (player_id,))

    def link_profile(self, player_id: str, profile_id: str) -> bool:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                UPDATE players
                SET profile_id = %s
                WHERE id = %s AND profile_id IS NULL
                """,
                (profile_id, player_id),
            )
            return cur.rowcount == 1
