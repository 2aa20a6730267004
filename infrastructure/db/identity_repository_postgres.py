from __future__ import annotations

from typing import Optional

from domain.models import Profile
from domain.repositories import IdentityRepository

from .postgres_support import cursor


class PostgresIdentityRepository(IdentityRepository):
    """
    Postgres-backed implementation of `IdentityRepository`.

    It uses a dedicated `profile_identities` table to map external identities
    (provider + provider_user_id) to profile IDs stored in `profiles`.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _ensure_table(self) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS profile_identities (
                    provider TEXT NOT NULL,
                    provider_user_id TEXT NOT NULL,
                    profile_id TEXT NOT NULL REFERENCES profiles (id),
                    PRIMARY KEY (provider, provider_user_id)
                )
                """
            )

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with cursor(self._db_params) as cur:
            cur.execute("SELECT id, display_name FROM profiles WHERE id = %s", (profile_id,))
            row = cur.fetchone()
            if not row:
                return None
            return Profile(id=str(row[0]), display_name=row[1])

    def add_profile(self, profile: Profile) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                INSERT INTO profiles (id, display_name)
                VALUES (%s, %s)
                ON CONFLICT (id) DO NOTHING
                """,
                (profile.id, profile.display_name),
            )

    def find_profile_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[Profile]:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                SELECT p.id, p.display_name
                FROM profile_identities i
                JOIN profiles p ON p.id = i.profile_id
                WHERE i.provider = %s AND i.provider_user_id = %s
                """,
                (provider, provider_user_id),
            )
            row = cur.fetchone()
            if not row:
                return None
            return Profile(id=str(row[0]), display_name=row[1])

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        profile_id: str,
    ) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                INSERT INTO profile_identities (provider, provider_user_id, profile_id)
                VALUES (%s, %s, %s)
                ON CONFLICT (provider, provider_user_id)
                DO UPDATE SET profile_id = EXCLUDED.profile_id
                """,
                (provider, provider_user_id, profile_id),
            )

    def clear_external_identity(
        self,
        provider: str,
        provider_user_id: str,
    ) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                DELETE FROM profile_identities
                WHERE provider = %s AND provider_user_id = %s
                """,
                (provider, provider_user_id),
            )
