from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from domain.models import ClubMembership, Profile
from domain.repositories import ClubRepository, IdentityRepository


@dataclass
class ExternalContext:
    """
    Information about the caller from a particular channel (Discord, web).

    The application layer never depends on concrete SDK types; it only sees
    this small context object.
    """

    provider: str
    provider_user_id: str
    display_name: str


@dataclass
class ViewerContext:
    """
    Who is looking, and which clubs they belong to.

    This is passed explicitly to whatever needs it. `identity_loaded` and
    `memberships_loaded` stay False until the corresponding lookups have
    finished, which the route guards treat as "decision pending".
    """

    identity: Optional[Profile] = None
    memberships: List[ClubMembership] = field(default_factory=list)
    identity_loaded: bool = False
    memberships_loaded: bool = False

    @property
    def needs_onboarding(self) -> bool:
        return self.identity is not None and not self.memberships

    @property
    def active_club_id(self) -> Optional[str]:
        if not self.memberships:
            return None
        return self.memberships[0].club_id

    def sign_in(self, profile: Profile, memberships: List[ClubMembership]) -> None:
        self.identity = profile
        self.memberships = list(memberships)
        self.identity_loaded = True
        self.memberships_loaded = True

    def sign_out(self) -> None:
        """Drop the identity together with everything derived from it."""

        self.identity = None
        self.memberships = []
        self.identity_loaded = True
        self.memberships_loaded = True


def resolve_viewer(
    external_ctx: ExternalContext,
    identity_repo: IdentityRepository,
    club_repo: ClubRepository,
) -> ViewerContext:
    """Build a fully loaded `ViewerContext` for an external caller."""

    viewer = ViewerContext()
    profile = identity_repo.find_profile_by_external(
        external_ctx.provider,
        external_ctx.provider_user_id,
    )
    if profile is None:
        viewer.sign_out()
        return viewer

    viewer.sign_in(profile, club_repo.memberships_for(profile.id))
    return viewer
