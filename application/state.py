from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Optional, Tuple

import structlog

from domain.errors import PersistenceError
from domain.gates import GateDecision, evaluate_chip_entry_gate, evaluate_finalize_gate
from domain.ledger import players_missing_buyins
from domain.models import Player, Session, Transaction
from domain.repositories import PlayerRepository, SessionRepository, TransactionRepository
from domain.stage import SessionStage, derive_session_stage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """
    One consistent read of a session, its roster and its ledger.

    All derived views come from a single snapshot so fields from two
    different reloads are never mixed.
    """

    session_id: str
    session: Optional[Session] = None
    players: Tuple[Player, ...] = field(default_factory=tuple)
    transactions: Tuple[Transaction, ...] = field(default_factory=tuple)

    @property
    def stage(self) -> SessionStage:
        return derive_session_stage(self.session, self.players, self.transactions)

    @property
    def chip_entry_gate(self) -> GateDecision:
        return evaluate_chip_entry_gate(self.session, self.players, self.transactions)

    @property
    def finalize_gate(self) -> GateDecision:
        return evaluate_finalize_gate(self.session)

    @property
    def missing_buyin_player_ids(self) -> frozenset:
        return frozenset(players_missing_buyins(self.session_id, self.players, self.transactions))


class SessionStateStore:
    """
    Holds the latest snapshot for one session and knows how to reload it.

    Each reload takes a token from a monotonically increasing counter. A
    response is installed only if its token is still the newest one issued,
    so a slow reload can never overwrite a fresher one.
    """

    def __init__(
        self,
        session_id: str,
        session_repo: SessionRepository,
        player_repo: PlayerRepository,
        transaction_repo: TransactionRepository,
    ) -> None:
        self._session_id = session_id
        self._session_repo = session_repo
        self._player_repo = player_repo
        self._transaction_repo = transaction_repo
        self._tokens = itertools.count(1)
        self._latest_token = 0
        self._snapshot = SessionSnapshot(session_id=session_id)
        self.last_error: Optional[str] = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def _load(self) -> SessionSnapshot:
        session = self._session_repo.get_session(self._session_id)
        players = self._player_repo.list_players(self._session_id)
        transactions = self._transaction_repo.list_transactions(self._session_id)
        return SessionSnapshot(
            session_id=self._session_id,
            session=session,
            players=tuple(players),
            transactions=tuple(transactions),
        )

    async def _fetch(self) -> SessionSnapshot:
        return await asyncio.to_thread(self._load)

    async def reload(self) -> bool:
        """
        Pull fresh facts from the repositories.

        Returns True if the loaded snapshot was installed. Returns False if it
        was superseded by a newer reload or the load failed; in both cases the
        previous snapshot stays in place.
        """

        token = next(self._tokens)
        self._latest_token = token
        log = logger.bind(session_id=self._session_id, token=token)

        try:
            snapshot = await self._fetch()
        except PersistenceError as exc:
            log.error("session_reload_failed", error=str(exc), exc_info=exc)
            if token == self._latest_token:
                self.last_error = str(exc)
            return False

        if token != self._latest_token:
            log.debug("session_reload_discarded", latest=self._latest_token)
            return False

        self._snapshot = snapshot
        self.last_error = None
        log.debug(
            "session_reloaded",
            stage=snapshot.stage.value,
            players=len(snapshot.players),
            transactions=len(snapshot.transactions),
        )
        return True
