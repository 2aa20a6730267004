from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from domain.errors import PersistenceError
from domain.gates import (
    GateDecision,
    evaluate_roster_change_gate,
    evaluate_transaction_gate,
)
from domain.models import (
    Club,
    ClubMembership,
    Currency,
    MemberRole,
    Player,
    Profile,
    Session,
    Transaction,
    TransactionType,
)
from domain.repositories import (
    ClubRepository,
    IdentityRepository,
    PlayerRepository,
    SessionRepository,
    TransactionRepository,
)

from .context import ExternalContext, ViewerContext

logger = structlog.get_logger(__name__)


@dataclass
class OperationResult:
    """Generic result type for simple operations."""

    success: bool
    error_message: Optional[str] = None
    entity_id: Optional[str] = None


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _denied(decision: GateDecision) -> OperationResult:
    return OperationResult(success=False, error_message=decision.message)


def _failed(action: str, exc: PersistenceError) -> OperationResult:
    logger.error("operation_failed", action=action, error=str(exc), exc_info=exc)
    return OperationResult(success=False, error_message=f"Failed to {action}: {exc}")


def register_profile(
    external_ctx: ExternalContext,
    identity_repo: IdentityRepository,
) -> OperationResult:
    """
    Bind an external identity to a profile, creating the profile on first use.

    `entity_id` is the profile ID, whether it was just created or already
    existed.
    """

    try:
        existing = identity_repo.find_profile_by_external(
            external_ctx.provider,
            external_ctx.provider_user_id,
        )
        if existing is not None:
            return OperationResult(success=True, entity_id=existing.id)

        profile = Profile(id=_new_id(), display_name=external_ctx.display_name)
        identity_repo.add_profile(profile)
        identity_repo.set_external_identity(
            external_ctx.provider,
            external_ctx.provider_user_id,
            profile.id,
        )
    except PersistenceError as exc:
        return _failed("register", exc)

    logger.info("profile_registered", profile_id=profile.id, provider=external_ctx.provider)
    return OperationResult(success=True, entity_id=profile.id)


def logout(
    external_ctx: ExternalContext,
    viewer: ViewerContext,
    identity_repo: IdentityRepository,
) -> OperationResult:
    try:
        identity_repo.clear_external_identity(
            external_ctx.provider,
            external_ctx.provider_user_id,
        )
    except PersistenceError as exc:
        return _failed("log out", exc)
    viewer.sign_out()
    return OperationResult(success=True)


def create_club(
    name: str,
    viewer: ViewerContext,
    club_repo: ClubRepository,
) -> OperationResult:
    if viewer.identity is None:
        return OperationResult(success=False, error_message="Please log in first.")
    if not name.strip():
        return OperationResult(success=False, error_message="Club name cannot be empty.")

    club = Club(id=_new_id(), name=name.strip(), join_code=secrets.token_hex(3).upper())
    try:
        club_repo.add_club(club)
        membership = ClubMembership(
            club_id=club.id,
            profile_id=viewer.identity.id,
            role=MemberRole.OWNER,
        )
        club_repo.add_membership(membership)
    except PersistenceError as exc:
        return _failed("create club", exc)

    viewer.memberships.append(membership)
    return OperationResult(success=True, entity_id=club.id)


def join_club_by_code(
    join_code: str,
    viewer: ViewerContext,
    club_repo: ClubRepository,
) -> OperationResult:
    if viewer.identity is None:
        return OperationResult(success=False, error_message="Please log in first.")

    try:
        club = club_repo.get_by_join_code(join_code.strip().upper())
        if club is None:
            return OperationResult(success=False, error_message="Unknown join code.")
        if any(m.club_id == club.id for m in viewer.memberships):
            return OperationResult(success=True, entity_id=club.id)

        membership = ClubMembership(club_id=club.id, profile_id=viewer.identity.id)
        club_repo.add_membership(membership)
    except PersistenceError as exc:
        return _failed("join club", exc)

    viewer.memberships.append(membership)
    return OperationResult(success=True, entity_id=club.id)


def create_session(
    name: str,
    currency: Currency | str,
    session_repo: SessionRepository,
    club_id: Optional[str] = None,
) -> OperationResult:
    if not name.strip():
        return OperationResult(success=False, error_message="Session name cannot be empty.")
    try:
        currency = Currency(currency)
    except ValueError:
        allowed = ", ".join(c.value for c in Currency)
        return OperationResult(success=False, error_message=f"Currency must be one of {allowed}.")

    session = Session(
        id=_new_id(),
        name=name.strip(),
        currency=currency,
        created_at=_now(),
        club_id=club_id,
    )
    try:
        session_repo.add_session(session)
    except PersistenceError as exc:
        return _failed("create session", exc)

    logger.info("session_created", session_id=session.id, club_id=club_id)
    return OperationResult(success=True, entity_id=session.id)


def add_player(
    session_id: str,
    name: str,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    transaction_repo: TransactionRepository,
    buyin_amount: Optional[float] = None,
) -> OperationResult:
    """
    Add a player to a session, optionally recording a fixed buy-in.

    If the buy-in write fails the player is kept; the buy-in can be added
    again later.
    """

    if not name.strip():
        return OperationResult(success=False, error_message="Player name cannot be empty.")

    try:
        session = session_repo.get_session(session_id)
    except PersistenceError as exc:
        return _failed("add player", exc)
    decision = evaluate_roster_change_gate(session)
    if not decision.allowed:
        return _denied(decision)

    player = Player(
        id=_new_id(),
        session_id=session_id,
        name=name.strip(),
        created_at=_now(),
    )
    try:
        player_repo.add_player(player)
    except PersistenceError as exc:
        return _failed("add player", exc)

    if buyin_amount is not None and buyin_amount > 0:
        result = record_transaction(
            session_id,
            player.id,
            TransactionType.BUYIN,
            buyin_amount,
            session_repo,
            player_repo,
            transaction_repo,
        )
        if not result.success:
            logger.warning("fixed_buyin_failed", player_id=player.id, error=result.error_message)

    return OperationResult(success=True, entity_id=player.id)


def remove_player(
    session_id: str,
    player_id: str,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
) -> OperationResult:
    try:
        session = session_repo.get_session(session_id)
        decision = evaluate_roster_change_gate(session)
        if not decision.allowed:
            return _denied(decision)

        if not any(p.id == player_id for p in player_repo.list_players(session_id)):
            return OperationResult(success=False, error_message="Player not found in this session.")

        player_repo.remove_player(player_id)
    except PersistenceError as exc:
        return _failed("remove player", exc)
    return OperationResult(success=True, entity_id=player_id)


def record_transaction(
    session_id: str,
    player_id: str,
    tx_type: TransactionType,
    amount: float,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    transaction_repo: TransactionRepository,
) -> OperationResult:
    """Append a buy-in or cash-out to the ledger after checking its gate."""

    try:
        session = session_repo.get_session(session_id)
        players = player_repo.list_players(session_id)
    except PersistenceError as exc:
        return _failed(f"add {tx_type.value}", exc)
    decision = evaluate_transaction_gate(session, players, player_id, tx_type, amount)
    if not decision.allowed:
        return _denied(decision)

    transaction = Transaction(
        id=_new_id(),
        session_id=session_id,
        player_id=player_id,
        type=tx_type,
        amount=float(amount),
        created_at=_now(),
    )
    try:
        transaction_repo.add_transaction(transaction)
    except PersistenceError as exc:
        return _failed(f"add {tx_type.value}", exc)
    return OperationResult(success=True, entity_id=transaction.id)


def record_buyin(
    session_id: str,
    player_id: str,
    amount: float,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    transaction_repo: TransactionRepository,
) -> OperationResult:
    return record_transaction(
        session_id,
        player_id,
        TransactionType.BUYIN,
        amount,
        session_repo,
        player_repo,
        transaction_repo,
    )


def record_cashout(
    session_id: str,
    player_id: str,
    amount: float,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
    transaction_repo: TransactionRepository,
) -> OperationResult:
    return record_transaction(
        session_id,
        player_id,
        TransactionType.CASHOUT,
        amount,
        session_repo,
        player_repo,
        transaction_repo,
    )


def link_player_identity(
    session_id: str,
    player_id: str,
    viewer: ViewerContext,
    session_repo: SessionRepository,
    player_repo: PlayerRepository,
) -> OperationResult:
    """
    "This is me": bind the viewer's profile to a player.

    A profile can be linked to at most one player per session, and a player
    that is already linked cannot be claimed again.
    """

    if viewer.identity is None:
        return OperationResult(success=False, error_message="Please log in to link your identity.")

    try:
        session = session_repo.get_session(session_id)
        players = player_repo.list_players(session_id)
    except PersistenceError as exc:
        return _failed("link identity", exc)

    if session is not None and session.is_finalized:
        return OperationResult(
            success=False,
            error_message="Cannot link identity to a finalized session.",
        )
    decision = evaluate_roster_change_gate(session)
    if not decision.allowed:
        return _denied(decision)

    player = next((p for p in players if p.id == player_id), None)
    if player is None:
        return OperationResult(success=False, error_message="Player not found in this session.")
    if player.profile_id:
        return OperationResult(
            success=False,
            error_message="This player is already linked to another account.",
        )

    already = next((p for p in players if p.profile_id == viewer.identity.id), None)
    if already is not None:
        return OperationResult(
            success=False,
            error_message=(
                f'You are already linked to "{already.name}" in this session. '
                "You can only link to one player per session."
            ),
        )

    try:
        linked = player_repo.link_profile(player_id, viewer.identity.id)
    except PersistenceError as exc:
        return _failed("link identity", exc)
    if not linked:
        return OperationResult(
            success=False,
            error_message="This player is already linked to another account.",
        )
    return OperationResult(success=True, entity_id=player_id)
