from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol

from .models import Club, ClubMembership, Player, Profile, Session, Transaction


class SessionRepository(Protocol):
    """
    Abstraction over session persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `Session` domain model.
    - Wrapping driver errors in `PersistenceError`.
    - Applying the two stage-transition writes conditionally, so that a
      timestamp already set is never overwritten.
    """

    def get_session(self, session_id: str) -> Optional[Session]:
        """Return the session with the given ID, or None if not found."""

        ...

    def list_sessions(self, club_id: Optional[str] = None) -> List[Session]:
        """Return sessions, newest first, optionally limited to one club."""

        ...

    def add_session(self, session: Session) -> None:
        ...

    def mark_chip_entry_started(self, session_id: str, started_at: datetime) -> bool:
        """
        Set `chip_entry_started_at` if it is still NULL.

        Returns True when a row was changed, False when the session is
        missing or chip entry had already started.
        """

        ...

    def mark_finalized(self, session_id: str, finalized_at: datetime) -> bool:
        """Set `finalized_at` if it is still NULL. Same contract as above."""

        ...


class PlayerRepository(Protocol):
    """Persistence for session rosters."""

    def list_players(self, session_id: str) -> List[Player]:
        """Players of a session ordered by `created_at` ascending."""

        ...

    def add_player(self, player: Player) -> None:
        ...

    def remove_player(self, player_id: str) -> None:
        ...

    def link_profile(self, player_id: str, profile_id: str) -> bool:
        """
        Attach a profile to a player that has none yet.

        Returns False when the player is already linked.
        """

        ...


class TransactionRepository(Protocol):
    """
    Append-only ledger storage.

    There is deliberately no update or delete: corrections are new entries.
    """

    def list_transactions(self, session_id: str) -> List[Transaction]:
        """All transactions of a session ordered by `created_at` ascending."""

        ...

    def add_transaction(self, transaction: Transaction) -> None:
        ...


class ClubRepository(Protocol):
    """Clubs and their memberships (tenancy)."""

    def get_club(self, club_id: str) -> Optional[Club]:
        ...

    def get_by_join_code(self, join_code: str) -> Optional[Club]:
        ...

    def add_club(self, club: Club) -> None:
        ...

    def add_membership(self, membership: ClubMembership) -> None:
        ...

    def memberships_for(self, profile_id: str) -> List[ClubMembership]:
        ...


class IdentityRepository(Protocol):
    """
    Maps external identities (Discord, web, ...) to internal profiles.

    The application layer works exclusively with profile IDs and leaves
    provider-specific identifiers to this abstraction.
    """

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        ...

    def add_profile(self, profile: Profile) -> None:
        ...

    def find_profile_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[Profile]:
        """Return the profile mapped to the given external identity, if any."""

        ...

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        profile_id: str,
    ) -> None:
        ...

    def clear_external_identity(
        self,
        provider: str,
        provider_user_id: str,
    ) -> None:
        """Remove any mapping for the given external identity (logout)."""

        ...
