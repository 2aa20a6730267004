"""
Read-only queries over a snapshot of ledger transactions.

Nothing here touches storage or mutates its inputs. An unknown session or
player simply yields an empty result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Set

from .models import Player, Transaction, TransactionType

# Tolerance for floating-point P/L comparisons.
BALANCE_TOLERANCE = 0.01


@dataclass(frozen=True)
class PlayerResult:
    player: Player
    total_buyins: float
    total_cashouts: float
    profit_loss: float


@dataclass(frozen=True)
class SessionTotals:
    total_buyins: float
    total_cashouts: float
    total_profit_loss: float


def _of_type(
    transactions: Iterable[Transaction],
    session_id: str,
    player_id: str,
    tx_type: TransactionType,
) -> List[Transaction]:
    return [
        t
        for t in transactions
        if t.session_id == session_id and t.player_id == player_id and t.type == tx_type
    ]


def buyins_of(
    transactions: Iterable[Transaction],
    session_id: str,
    player_id: str,
) -> List[Transaction]:
    """Buy-ins for one player in one session, in snapshot order."""

    return _of_type(transactions, session_id, player_id, TransactionType.BUYIN)


def cashouts_of(
    transactions: Iterable[Transaction],
    session_id: str,
    player_id: str,
) -> List[Transaction]:
    """Cash-outs for one player in one session, in snapshot order."""

    return _of_type(transactions, session_id, player_id, TransactionType.CASHOUT)


def players_missing_buyins(
    session_id: str,
    players: Sequence[Player],
    transactions: Iterable[Transaction],
) -> Set[str]:
    """
    IDs of roster players with no buy-in recorded in this session.

    An empty roster yields an empty set.
    """

    bought_in = {
        t.player_id
        for t in transactions
        if t.session_id == session_id and t.type == TransactionType.BUYIN
    }
    return {p.id for p in players if p.id not in bought_in}


def player_results(
    session_id: str,
    players: Sequence[Player],
    transactions: Sequence[Transaction],
) -> List[PlayerResult]:
    """Per-player buy-in / cash-out totals and P/L, in roster order."""

    results = []
    for player in players:
        total_buyins = sum(t.amount for t in buyins_of(transactions, session_id, player.id))
        total_cashouts = sum(t.amount for t in cashouts_of(transactions, session_id, player.id))
        results.append(
            PlayerResult(
                player=player,
                total_buyins=total_buyins,
                total_cashouts=total_cashouts,
                profit_loss=total_cashouts - total_buyins,
            )
        )
    return results


def session_totals(
    session_id: str,
    players: Sequence[Player],
    transactions: Sequence[Transaction],
) -> SessionTotals:
    results = player_results(session_id, players, transactions)
    total_buyins = sum(r.total_buyins for r in results)
    total_cashouts = sum(r.total_cashouts for r in results)
    return SessionTotals(
        total_buyins=total_buyins,
        total_cashouts=total_cashouts,
        total_profit_loss=total_cashouts - total_buyins,
    )


def winners(results: Iterable[PlayerResult]) -> List[PlayerResult]:
    """Players up by more than the tolerance, biggest winner first."""

    return sorted(
        (r for r in results if r.profit_loss > BALANCE_TOLERANCE),
        key=lambda r: r.profit_loss,
        reverse=True,
    )


def losers(results: Iterable[PlayerResult]) -> List[PlayerResult]:
    """Players down by more than the tolerance, biggest loser first."""

    return sorted(
        (r for r in results if r.profit_loss < -BALANCE_TOLERANCE),
        key=lambda r: r.profit_loss,
    )


def break_even(results: Iterable[PlayerResult]) -> List[PlayerResult]:
    return [r for r in results if abs(r.profit_loss) <= BALANCE_TOLERANCE]
