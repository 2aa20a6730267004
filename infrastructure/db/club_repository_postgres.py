from __future__ import annotations

from typing import List, Optional

from domain.models import Club, ClubMembership, MemberRole
from domain.repositories import ClubRepository

from .postgres_support import cursor


class PostgresClubRepository(ClubRepository):
    """Postgres-backed implementation of `ClubRepository`."""

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _ensure_table(self) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS clubs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    join_code TEXT UNIQUE
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS club_members (
                    club_id TEXT NOT NULL,
                    profile_id TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'member',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    PRIMARY KEY (club_id, profile_id)
                )
                """
            )

    def get_club(self, club_id: str) -> Optional[Club]:
        with cursor(self._db_params) as cur:
            cur.execute("SELECT id, name, join_code FROM clubs WHERE id = %s", (club_id,))
            row = cur.fetchone()
            return Club(id=str(row[0]), name=row[1], join_code=row[2]) if row else None

    def get_by_join_code(self, join_code: str) -> Optional[Club]:
        with cursor(self._db_params) as cur:
            cur.execute("SELECT id, name, join_code FROM clubs WHERE join_code = %s", (join_code,))
            row = cur.fetchone()
            return Club(id=str(row[0]), name=row[1], join_code=row[2]) if row else None

    def add_club(self, club: Club) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                "INSERT INTO clubs (id, name, join_code) VALUES (%s, %s, %s)",
                (club.id, club.name, club.join_code),
            )

    def add_membership(self, membership: ClubMembership) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                INSERT INTO club_members (club_id, profile_id, role)
                VALUES (%s, %s, %s)
                ON CONFLICT (club_id, profile_id) DO NOTHING
                """,
                (membership.club_id, membership.profile_id, MemberRole(membership.role).value),
            )

    def memberships_for(self, profile_id: str) -> List[ClubMembership]:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                SELECT club_id, profile_id, role
                FROM club_members
                WHERE profile_id = %s
                ORDER BY created_at ASC
                """,
                (profile_id,),
            )
            return [
                ClubMembership(club_id=str(r[0]), profile_id=str(r[1]), role=MemberRole(r[2]))
                for r in cur.fetchall()
            ]
