"""
Route guards.

A small second state machine that gates navigation rather than data.
Guards are nested: identity first, then onboarding. Each one either lets
the location render, asks for a placeholder while its inputs are still
loading, or redirects to a canonical location. Nothing is latched, so
callers re-evaluate whenever identity, memberships or the path change.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from .context import ViewerContext

ENTRY_LOCATION = "/"
ONBOARDING_LOCATION = "/join"
AUTH_PREFIX = "/auth/"

PROTECTED_PATTERNS = ("/sessions", "/stats", "/join", "/club")
PROTECTED_PREFIX = "/session/"


class GuardAction(str, Enum):
    RENDER = "render"
    PENDING = "pending"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    action: GuardAction
    location: Optional[str] = None

    @property
    def should_render(self) -> bool:
        return self.action is GuardAction.RENDER


RENDER = GuardDecision(GuardAction.RENDER)
PENDING = GuardDecision(GuardAction.PENDING)


def _is_auth_path(path: str) -> bool:
    return path.startswith(AUTH_PREFIX)


def is_public_path(path: str) -> bool:
    return path == ENTRY_LOCATION or _is_auth_path(path)


def is_protected_path(path: str) -> bool:
    if path.startswith(PROTECTED_PREFIX):
        return True
    return any(path == p or path.startswith(p + "/") for p in PROTECTED_PATTERNS)


def identity_guard(viewer: ViewerContext, path: str) -> GuardDecision:
    """Send anonymous visitors of protected locations to the entry point."""

    if not viewer.identity_loaded:
        return PENDING
    if viewer.identity is not None:
        return RENDER
    if is_public_path(path) or not is_protected_path(path):
        return RENDER
    return GuardDecision(GuardAction.REDIRECT, ENTRY_LOCATION)


def onboarding_guard(viewer: ViewerContext, path: str) -> GuardDecision:
    """Send signed-in users without a club to the join page."""

    if viewer.identity is None:
        return RENDER
    if not viewer.memberships_loaded:
        return PENDING
    if not viewer.needs_onboarding:
        return RENDER
    if path == ONBOARDING_LOCATION or _is_auth_path(path):
        return RENDER
    return GuardDecision(GuardAction.REDIRECT, ONBOARDING_LOCATION)


Guard = Callable[[ViewerContext, str], GuardDecision]

DEFAULT_GUARDS: Sequence[Guard] = (identity_guard, onboarding_guard)


def evaluate_guards(
    viewer: ViewerContext,
    path: str,
    guards: Sequence[Guard] = DEFAULT_GUARDS,
) -> GuardDecision:
    """Run guards outermost first; the first one that does not render wins."""

    for guard in guards:
        decision = guard(viewer, path)
        if not decision.should_render:
            return decision
    return RENDER
