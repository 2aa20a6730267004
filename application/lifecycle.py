from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import structlog

from domain.errors import PersistenceError
from domain.gates import GateDecision, GateReason, render_reason
from domain.repositories import SessionRepository
from domain.stage import SessionStage

from .state import SessionSnapshot, SessionStateStore

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransitionOutcome(str, Enum):
    APPLIED = "applied"
    DENIED = "denied"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class TransitionResult:
    """Result of a guarded stage transition."""

    outcome: TransitionOutcome
    reason: Optional[GateReason] = None
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is TransitionOutcome.APPLIED


class LifecycleController:
    """
    Imperative stage transitions for one session.

    The controller holds no stage of its own. `stage` is always derived
    from the store's latest snapshot, and every successful write is
    followed by a full reload rather than a local update.

    Only one write may be outstanding at a time: while `in_progress` is
    true, further transition calls are rejected with `BUSY`, not queued.
    """

    def __init__(
        self,
        store: SessionStateStore,
        session_repo: SessionRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._session_repo = session_repo
        self._clock = clock
        self._in_progress = False
        self.error: Optional[str] = None

    @property
    def session_id(self) -> str:
        return self._store.session_id

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._store.snapshot

    @property
    def load_error(self) -> Optional[str]:
        """Why the most recent reload failed, if it did."""

        return self._store.last_error

    @property
    def stage(self) -> SessionStage:
        return self._store.snapshot.stage

    @property
    def chip_entry_gate(self) -> GateDecision:
        return self._store.snapshot.chip_entry_gate

    @property
    def finalize_gate(self) -> GateDecision:
        return self._store.snapshot.finalize_gate

    async def reload(self) -> bool:
        """Re-pull the session facts; see `SessionStateStore.reload`."""

        return await self._store.reload()

    async def start_chip_entry(self) -> TransitionResult:
        """Move the session from buy-ins to chip entry."""

        return await self._transition(
            action="start chip entry",
            gate=lambda: self._store.snapshot.chip_entry_gate,
            write=self._session_repo.mark_chip_entry_started,
            lost_race_reason=GateReason.CHIP_ENTRY_ALREADY_STARTED,
        )

    async def finalize_session(self) -> TransitionResult:
        """Lock the session. This can never be undone."""

        return await self._transition(
            action="finalize session",
            gate=lambda: self._store.snapshot.finalize_gate,
            write=self._session_repo.mark_finalized,
            lost_race_reason=GateReason.SESSION_FINALIZED,
        )

    async def _transition(
        self,
        action: str,
        gate: Callable[[], GateDecision],
        write: Callable[[str, datetime], bool],
        lost_race_reason: GateReason,
    ) -> TransitionResult:
        log = logger.bind(session_id=self.session_id, action=action)

        if self._in_progress:
            log.info("transition_rejected_busy")
            return TransitionResult(outcome=TransitionOutcome.BUSY)

        decision = gate()
        if not decision.allowed:
            self.error = decision.message
            log.info("transition_denied", reason=decision.reason.value)
            return TransitionResult(
                outcome=TransitionOutcome.DENIED,
                reason=decision.reason,
                error_message=decision.message,
            )

        self._in_progress = True
        self.error = None
        try:
            try:
                applied = await asyncio.to_thread(write, self.session_id, self._clock())
            except PersistenceError as exc:
                self.error = f"Failed to {action}: {exc}"
                log.error("transition_write_failed", error=str(exc), exc_info=exc)
                return TransitionResult(outcome=TransitionOutcome.FAILED, error_message=self.error)
            except Exception:
                self.error = f"Failed to {action}. Please try again."
                log.exception("transition_unexpected_error")
                return TransitionResult(outcome=TransitionOutcome.FAILED, error_message=self.error)

            # Reload whether or not the conditional write changed a row, so
            # the derived stage reflects what was actually persisted.
            reloaded = await self._store.reload()
        finally:
            self._in_progress = False

        if not applied:
            self.error = render_reason(lost_race_reason)
            log.info("transition_lost_race", reason=lost_race_reason.value)
            return TransitionResult(
                outcome=TransitionOutcome.DENIED,
                reason=lost_race_reason,
                error_message=self.error,
            )

        if not reloaded and self._store.last_error is not None:
            # The write is durable; only the displayed stage is behind.
            self.error = f"Failed to reload session: {self._store.last_error}"
            log.warning("transition_applied_reload_failed", error=self._store.last_error)
            return TransitionResult(outcome=TransitionOutcome.APPLIED, error_message=self.error)

        log.info("transition_applied", stage=self.stage.value)
        return TransitionResult(outcome=TransitionOutcome.APPLIED)
