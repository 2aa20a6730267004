from __future__ import annotations

from typing import Optional

from domain.models import Profile
from domain.repositories import IdentityRepository

from .sqlite_support import connect


class SqliteIdentityRepository(IdentityRepository):
    """
    SQLite-backed implementation of `IdentityRepository`.

    Owns the `profiles` table and stores mappings from
    (provider, provider_user_id) to profile IDs in `profile_identities`.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _ensure_table(self) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS profile_identities (
                    provider TEXT NOT NULL,
                    provider_user_id TEXT NOT NULL,
                    profile_id TEXT NOT NULL,
                    PRIMARY KEY (provider, provider_user_id)
                )
                """
            )

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with connect(self._db_path) as conn:
            row = conn.execute(
                "SELECT id, display_name FROM profiles WHERE id = ?",
                (profile_id,),
            ).fetchone()
            if not row:
                return None
            return Profile(id=str(row["id"]), display_name=row["display_name"])

    def add_profile(self, profile: Profile) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO profiles (id, display_name) VALUES (?, ?)",
                (profile.id, profile.display_name),
            )

    def find_profile_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[Profile]:
        with connect(self._db_path) as conn:
            row = conn.execute(
                """
                SELECT p.id, p.display_name
                FROM profile_identities i
                JOIN profiles p ON p.id = i.profile_id
                WHERE i.provider = ? AND i.provider_user_id = ?
                """,
                (provider, provider_user_id),
            ).fetchone()
            if not row:
                return None
            return Profile(id=str(row["id"]), display_name=row["display_name"])

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        profile_id: str,
    ) -> None:
        """
        Upsert a mapping from external identity to profile ID.
        """

        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO profile_identities (provider, provider_user_id, profile_id)
                VALUES (?, ?, ?)
                ON CONFLICT (provider, provider_user_id)
                DO UPDATE SET profile_id = excluded.profile_id
                """,
                (provider, provider_user_id, profile_id),
            )

    def clear_external_identity(
        self,
        provider: str,
        provider_user_id: str,
    ) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                DELETE FROM profile_identities
                WHERE provider = ? AND provider_user_id = ?
                """,
                (provider, provider_user_id),
            )
