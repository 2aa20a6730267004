"""
Transition gates.

Each gate is a pure function of a snapshot that returns a `GateDecision`.
Checks run in a fixed order and the first failing check decides the
outcome. Reasons are codes; `GateDecision.message` renders them for
display through `MESSAGES`, so callers branch on codes, not prose.

Gates are re-evaluated on every call and never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Sequence

from .ledger import players_missing_buyins
from .models import Player, Session, Transaction, TransactionType


class GateReason(str, Enum):
    SESSION_NOT_LOADED = "session_not_loaded"
    CHIP_ENTRY_ALREADY_STARTED = "chip_entry_already_started"
    NO_PLAYERS = "no_players"
    PLAYERS_MISSING_BUYINS = "players_missing_buyins"
    SESSION_FINALIZED = "session_finalized"
    CHIP_ENTRY_NOT_STARTED = "chip_entry_not_started"
    PLAYER_NOT_FOUND = "player_not_found"
    INVALID_AMOUNT = "invalid_amount"


MESSAGES = {
    GateReason.SESSION_NOT_LOADED: "session not loaded.",
    GateReason.CHIP_ENTRY_ALREADY_STARTED: "chip entry already started",
    GateReason.NO_PLAYERS: "add at least one player first.",
    GateReason.SESSION_FINALIZED: "session is finalized and cannot be modified",
    GateReason.CHIP_ENTRY_NOT_STARTED: "start chip entry before finalizing",
    GateReason.PLAYER_NOT_FOUND: "player is not part of this session",
    GateReason.INVALID_AMOUNT: "buy-ins must be above zero and cash-outs cannot be negative",
}


def render_reason(reason: GateReason, count: int = 0) -> str:
    """Human-readable text for a reason code."""

    if reason is GateReason.PLAYERS_MISSING_BUYINS:
        noun = "player" if count == 1 else "players"
        return f"{count} {noun} missing buy-ins"
    return MESSAGES[reason]


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: Optional[GateReason] = None
    missing_player_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def count(self) -> int:
        return len(self.missing_player_ids)

    @property
    def message(self) -> Optional[str]:
        if self.reason is None:
            return None
        return render_reason(self.reason, self.count)


ALLOWED = GateDecision(allowed=True)


def _deny(reason: GateReason, missing: FrozenSet[str] = frozenset()) -> GateDecision:
    return GateDecision(allowed=False, reason=reason, missing_player_ids=missing)


def evaluate_chip_entry_gate(
    session: Optional[Session],
    players: Sequence[Player],
    transactions: Sequence[Transaction],
) -> GateDecision:
    """
    Hard gate for "start chip entry".

    Chip entry can never start while any current player lacks a buy-in.
    """

    if session is None:
        return _deny(GateReason.SESSION_NOT_LOADED)
    if session.chip_entry_started_at is not None:
        return _deny(GateReason.CHIP_ENTRY_ALREADY_STARTED)
    if not players:
        return _deny(GateReason.NO_PLAYERS)

    missing = players_missing_buyins(session.id, players, transactions)
    if missing:
        return _deny(GateReason.PLAYERS_MISSING_BUYINS, frozenset(missing))

    return ALLOWED


def evaluate_finalize_gate(session: Optional[Session]) -> GateDecision:
    """Finalizing requires chip entry to have started and is allowed once."""

    if session is None:
        return _deny(GateReason.SESSION_NOT_LOADED)
    if session.finalized_at is not None:
        return _deny(GateReason.SESSION_FINALIZED)
    if session.chip_entry_started_at is None:
        return _deny(GateReason.CHIP_ENTRY_NOT_STARTED)
    return ALLOWED


def evaluate_roster_change_gate(session: Optional[Session]) -> GateDecision:
    """Players may be added, removed or linked only before finalization."""

    if session is None:
        return _deny(GateReason.SESSION_NOT_LOADED)
    if session.finalized_at is not None:
        return _deny(GateReason.SESSION_FINALIZED)
    return ALLOWED


def evaluate_transaction_gate(
    session: Optional[Session],
    players: Sequence[Player],
    player_id: str,
    tx_type: TransactionType,
    amount: float,
) -> GateDecision:
    """
    Guard for appending a ledger entry.

    Buy-ins must be positive; a cash-out of zero is a valid "busted" entry.
    """

    roster_gate = evaluate_roster_change_gate(session)
    if not roster_gate.allowed:
        return roster_gate
    if not any(p.id == player_id for p in players):
        return _deny(GateReason.PLAYER_NOT_FOUND)
    if tx_type == TransactionType.BUYIN and not amount > 0:
        return _deny(GateReason.INVALID_AMOUNT)
    if tx_type == TransactionType.CASHOUT and not amount >= 0:
        return _deny(GateReason.INVALID_AMOUNT)
    return ALLOWED
