from __future__ import annotations

import sqlite3
from typing import List, Optional

from domain.models import Club, ClubMembership, MemberRole
from domain.repositories import ClubRepository

from .sqlite_support import connect


class SqliteClubRepository(ClubRepository):
    """
    SQLite-backed implementation of `ClubRepository`.

    Manages the `clubs` and `club_members` tables.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _ensure_table(self) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS clubs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    join_code TEXT UNIQUE
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS club_members (
                    club_id TEXT NOT NULL,
                    profile_id TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'member',
                    PRIMARY KEY (club_id, profile_id)
                )
                """
            )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Club:
        return Club(id=str(row["id"]), name=row["name"], join_code=row["join_code"])

    def get_club(self, club_id: str) -> Optional[Club]:
        with connect(self._db_path) as conn:
            row = conn.execute(
                "SELECT id, name, join_code FROM clubs WHERE id = ?",
                (club_id,),
            ).fetchone()
            return self._to_domain(row) if row else None

    def get_by_join_code(self, join_code: str) -> Optional[Club]:
        with connect(self._db_path) as conn:
            row = conn.execute(
                "SELECT id, name, join_code FROM clubs WHERE join_code = ?",
                (join_code,),
            ).fetchone()
            return self._to_domain(row) if row else None

    def add_club(self, club: Club) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                "INSERT INTO clubs (id, name, join_code) VALUES (?, ?, ?)",
                (club.id, club.name, club.join_code),
            )

    def add_membership(self, membership: ClubMembership) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO club_members (club_id, profile_id, role)
                VALUES (?, ?, ?)
                """,
                (
                    membership.club_id,
                    membership.profile_id,
                    MemberRole(membership.role).value,
                ),
            )

    def memberships_for(self, profile_id: str) -> List[ClubMembership]:
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT club_id, profile_id, role
                FROM club_members
                WHERE profile_id = ?
                ORDER BY rowid ASC
                """,
                (profile_id,),
            ).fetchall()
            return [
                ClubMembership(
                    club_id=str(row["club_id"]),
                    profile_id=str(row["profile_id"]),
                    role=MemberRole(row["role"]),
                )
                for row in rows
            ]
