import unittest

from application.context import ViewerContext
from application.navigation import (
    GuardAction,
    evaluate_guards,
    identity_guard,
    is_protected_path,
    onboarding_guard,
)
from domain.models import ClubMembership, Profile

ALICE = Profile(id="u1", display_name="Alice")
MEMBERSHIP = ClubMembership(club_id="c1", profile_id="u1")


def _anonymous() -> ViewerContext:
    viewer = ViewerContext()
    viewer.sign_out()
    return viewer


def _member() -> ViewerContext:
    viewer = ViewerContext()
    viewer.sign_in(ALICE, [MEMBERSHIP])
    return viewer


def _newcomer() -> ViewerContext:
    viewer = ViewerContext()
    viewer.sign_in(ALICE, [])
    return viewer


class ProtectedPathTests(unittest.TestCase):
    def test_protected_prefixes(self):
        for path in ("/sessions", "/sessions/archive", "/stats", "/stats/player/9", "/join", "/club/members", "/session/abc"):
            self.assertTrue(is_protected_path(path), path)

    def test_unprotected_paths(self):
        for path in ("/", "/auth/callback", "/sessionsx", "/clubhouse", "/about"):
            self.assertFalse(is_protected_path(path), path)


class IdentityGuardTests(unittest.TestCase):
    def test_pending_while_identity_loads(self):
        decision = identity_guard(ViewerContext(), "/sessions")
        self.assertIs(decision.action, GuardAction.PENDING)
        self.assertFalse(decision.should_render)

    def test_anonymous_redirected_from_protected(self):
        decision = identity_guard(_anonymous(), "/session/abc")
        self.assertIs(decision.action, GuardAction.REDIRECT)
        self.assertEqual(decision.location, "/")

    def test_anonymous_may_see_public_and_unprotected(self):
        for path in ("/", "/auth/callback", "/about"):
            self.assertTrue(identity_guard(_anonymous(), path).should_render, path)

    def test_signed_in_renders(self):
        self.assertTrue(identity_guard(_member(), "/sessions").should_render)


class OnboardingGuardTests(unittest.TestCase):
    def test_newcomer_sent_to_join(self):
        decision = onboarding_guard(_newcomer(), "/sessions")
        self.assertIs(decision.action, GuardAction.REDIRECT)
        self.assertEqual(decision.location, "/join")

    def test_newcomer_may_stay_on_join_and_auth(self):
        self.assertTrue(onboarding_guard(_newcomer(), "/join").should_render)
        self.assertTrue(onboarding_guard(_newcomer(), "/auth/callback").should_render)

    def test_pending_while_memberships_load(self):
        viewer = ViewerContext(identity=ALICE, identity_loaded=True)
        self.assertIs(onboarding_guard(viewer, "/sessions").action, GuardAction.PENDING)

    def test_anonymous_is_not_its_concern(self):
        self.assertTrue(onboarding_guard(_anonymous(), "/sessions").should_render)


class ComposedGuardTests(unittest.TestCase):
    def test_identity_checked_before_onboarding(self):
        self.assertEqual(evaluate_guards(_anonymous(), "/sessions").location, "/")
        self.assertEqual(evaluate_guards(_newcomer(), "/sessions").location, "/join")
        self.assertTrue(evaluate_guards(_member(), "/sessions").should_render)

    def test_re_evaluates_after_sign_out(self):
        viewer = _member()
        self.assertTrue(evaluate_guards(viewer, "/session/s1").should_render)
        viewer.sign_out()
        self.assertIsNone(viewer.identity)
        self.assertEqual(viewer.memberships, [])
        self.assertEqual(evaluate_guards(viewer, "/session/s1").location, "/")


if __name__ == "__main__":
    unittest.main()
