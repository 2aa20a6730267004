from __future__ import annotations

from dataclasses import dataclass

from config import Settings
from domain.repositories import (
    ClubRepository,
    IdentityRepository,
    PlayerRepository,
    SessionRepository,
    TransactionRepository,
)


@dataclass
class Repositories:
    sessions: SessionRepository
    players: PlayerRepository
    transactions: TransactionRepository
    clubs: ClubRepository
    identities: IdentityRepository


def build_repositories(settings: Settings) -> Repositories:
    """Instantiate the repository set for the configured backend."""

    if settings.db_backend == "postgres":
        from .club_repository_postgres import PostgresClubRepository
        from .identity_repository_postgres import PostgresIdentityRepository
        from .player_repository_postgres import PostgresPlayerRepository
        from .session_repository_postgres import PostgresSessionRepository
        from .transaction_repository_postgres import PostgresTransactionRepository

        params = settings.pg_params
        return Repositories(
            sessions=PostgresSessionRepository(params),
            players=PostgresPlayerRepository(params),
            transactions=PostgresTransactionRepository(params),
            clubs=PostgresClubRepository(params),
            identities=PostgresIdentityRepository(params),
        )

    from .club_repository_sqlite import SqliteClubRepository
    from .identity_repository_sqlite import SqliteIdentityRepository
    from .player_repository_sqlite import SqlitePlayerRepository
    from .session_repository_sqlite import SqliteSessionRepository
    from .transaction_repository_sqlite import SqliteTransactionRepository

    path = settings.db_path
    return Repositories(
        sessions=SqliteSessionRepository(path),
        players=SqlitePlayerRepository(path),
        transactions=SqliteTransactionRepository(path),
        clubs=SqliteClubRepository(path),
        identities=SqliteIdentityRepository(path),
    )
