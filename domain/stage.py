"""
Session stage derivation.

The stage is never stored. It is recomputed from the session row, the
roster and the ledger every time it is needed:

    player_setup -> buyins -> chip_entry -> review -> finalized

`review` is reserved for an explicit pre-finalization step and is not
produced by `derive_session_stage` yet.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

from .models import Player, Session, Transaction


class SessionStage(str, Enum):
    PLAYER_SETUP = "player_setup"
    BUYINS = "buyins"
    CHIP_ENTRY = "chip_entry"
    REVIEW = "review"
    FINALIZED = "finalized"


STAGE_ORDER = (
    SessionStage.PLAYER_SETUP,
    SessionStage.BUYINS,
    SessionStage.CHIP_ENTRY,
    SessionStage.REVIEW,
    SessionStage.FINALIZED,
)


def derive_session_stage(
    session: Optional[Session],
    players: Sequence[Player],
    transactions: Sequence[Transaction],
) -> SessionStage:
    """
    Map a snapshot to its lifecycle stage. First matching rule wins:

    1. no session loaded   -> player_setup
    2. finalized_at set    -> finalized
    3. chip entry started  -> chip_entry
    4. empty roster        -> player_setup
    5. otherwise           -> buyins

    `transactions` is accepted so callers always pass a whole snapshot;
    buy-in completeness gates the transition, not the stage itself.
    """

    if session is None:
        return SessionStage.PLAYER_SETUP
    if session.finalized_at is not None:
        return SessionStage.FINALIZED
    if session.chip_entry_started_at is not None:
        return SessionStage.CHIP_ENTRY
    if not players:
        return SessionStage.PLAYER_SETUP
    return SessionStage.BUYINS


def stage_index(stage: SessionStage) -> int:
    return STAGE_ORDER.index(stage)
