import unittest

from structlog.testing import capture_logs

from application import services
from application.context import ExternalContext, ViewerContext, resolve_viewer
from domain.errors import PersistenceError
from domain.models import Currency, TransactionType
from tests.fakes import (
    EPOCH,
    InMemoryClubRepository,
    InMemoryIdentityRepository,
    InMemoryPlayerRepository,
    InMemorySessionRepository,
    InMemoryTransactionRepository,
    make_session,
)


class FailingTransactionRepository(InMemoryTransactionRepository):
    def add_transaction(self, transaction) -> None:
        raise PersistenceError("disk full")


class UnreachableIdentityRepository(InMemoryIdentityRepository):
    def find_profile_by_external(self, provider, provider_user_id):
        raise PersistenceError("connection refused")


class UnreachableClubRepository(InMemoryClubRepository):
    def get_by_join_code(self, join_code):
        raise PersistenceError("connection refused")


class UnreachablePlayerRepository(InMemoryPlayerRepository):
    def list_players(self, session_id):
        raise PersistenceError("connection refused")


class ApplicationServicesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_repo = InMemorySessionRepository()
        self.player_repo = InMemoryPlayerRepository()
        self.transaction_repo = InMemoryTransactionRepository()
        self.club_repo = InMemoryClubRepository()
        self.identity_repo = InMemoryIdentityRepository()
        self.ctx = ExternalContext(
            provider="discord",
            provider_user_id="12345",
            display_name="John Doe",
        )
        created = services.create_session("Friday", "ILS", self.session_repo, club_id="c1")
        self.assertTrue(created.success)
        self.session_id = created.entity_id

    def _add(self, name, buyin=None):
        result = services.add_player(
            self.session_id,
            name,
            self.session_repo,
            self.player_repo,
            self.transaction_repo,
            buyin_amount=buyin,
        )
        self.assertTrue(result.success, result.error_message)
        return result.entity_id

    def test_create_session_validates_input(self):
        session = self.session_repo.get_session(self.session_id)
        self.assertIs(session.currency, Currency.ILS)
        self.assertEqual(session.club_id, "c1")
        self.assertIsNone(session.chip_entry_started_at)

        bad_currency = services.create_session("x", "GBP", self.session_repo)
        self.assertFalse(bad_currency.success)
        self.assertIn("USD", bad_currency.error_message)
        self.assertFalse(services.create_session("   ", "USD", self.session_repo).success)

    def test_add_player_with_fixed_buyin_records_transaction(self):
        player_id = self._add("Alice", buyin=100)
        txs = self.transaction_repo.list_transactions(self.session_id)
        self.assertEqual(len(txs), 1)
        self.assertEqual(txs[0].player_id, player_id)
        self.assertIs(txs[0].type, TransactionType.BUYIN)
        self.assertEqual(txs[0].amount, 100.0)

    def test_add_player_without_buyin(self):
        self._add("Bob")
        self.assertEqual(self.transaction_repo.list_transactions(self.session_id), [])

    def test_failed_fixed_buyin_keeps_player(self):
        self.transaction_repo = FailingTransactionRepository()
        player_id = self._add("Carol", buyin=50)
        self.assertEqual([p.id for p in self.player_repo.list_players(self.session_id)], [player_id])

    def test_record_buyin_and_cashout(self):
        player_id = self._add("Alice")
        buyin = services.record_buyin(
            self.session_id, player_id, 50, self.session_repo, self.player_repo, self.transaction_repo
        )
        cashout = services.record_cashout(
            self.session_id, player_id, 0, self.session_repo, self.player_repo, self.transaction_repo
        )
        self.assertTrue(buyin.success)
        self.assertTrue(cashout.success)
        types = [t.type for t in self.transaction_repo.list_transactions(self.session_id)]
        self.assertEqual(types, [TransactionType.BUYIN, TransactionType.CASHOUT])

    def test_zero_buyin_is_rejected(self):
        player_id = self._add("Alice")
        result = services.record_buyin(
            self.session_id, player_id, 0, self.session_repo, self.player_repo, self.transaction_repo
        )
        self.assertFalse(result.success)
        self.assertEqual(self.transaction_repo.list_transactions(self.session_id), [])

    def test_persistence_error_becomes_result(self):
        player_id = self._add("Alice")
        result = services.record_buyin(
            self.session_id,
            player_id,
            10,
            self.session_repo,
            self.player_repo,
            FailingTransactionRepository(),
        )
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "Failed to add buyin: disk full")

    def test_persistence_error_is_logged_with_exception(self):
        player_id = self._add("Alice")
        with capture_logs() as logs:
            services.record_buyin(
                self.session_id,
                player_id,
                10,
                self.session_repo,
                self.player_repo,
                FailingTransactionRepository(),
            )
        entry = next(e for e in logs if e["event"] == "operation_failed")
        self.assertEqual(entry["log_level"], "error")
        self.assertIsInstance(entry["exc_info"], PersistenceError)

    def test_failed_session_read_becomes_result(self):
        player_id = self._add("Alice")
        self.session_repo.read_error = PersistenceError("connection refused")

        added = services.add_player(
            self.session_id, "Bob", self.session_repo, self.player_repo, self.transaction_repo
        )
        self.assertFalse(added.success)
        self.assertEqual(added.error_message, "Failed to add player: connection refused")

        buyin = services.record_buyin(
            self.session_id, player_id, 10, self.session_repo, self.player_repo, self.transaction_repo
        )
        self.assertFalse(buyin.success)
        self.assertEqual(buyin.error_message, "Failed to add buyin: connection refused")

        removed = services.remove_player(self.session_id, player_id, self.session_repo, self.player_repo)
        self.assertFalse(removed.success)
        self.assertEqual(len(self.player_repo.list_players(self.session_id)), 1)

    def test_failed_identity_and_club_reads_become_results(self):
        identity_repo = UnreachableIdentityRepository()
        registered = services.register_profile(self.ctx, identity_repo)
        self.assertFalse(registered.success)
        self.assertEqual(registered.error_message, "Failed to register: connection refused")

        services.register_profile(self.ctx, self.identity_repo)
        viewer = resolve_viewer(self.ctx, self.identity_repo, self.club_repo)
        joined = services.join_club_by_code("ABC123", viewer, UnreachableClubRepository())
        self.assertFalse(joined.success)
        self.assertEqual(viewer.memberships, [])

        linked = services.link_player_identity(
            self.session_id, "p1", viewer, self.session_repo, UnreachablePlayerRepository()
        )
        self.assertFalse(linked.success)
        self.assertEqual(linked.error_message, "Failed to link identity: connection refused")

    def test_roster_frozen_after_finalize(self):
        player_id = self._add("Alice", buyin=100)
        self.session_repo.sessions[self.session_id].chip_entry_started_at = EPOCH
        self.session_repo.sessions[self.session_id].finalized_at = EPOCH

        removed = services.remove_player(self.session_id, player_id, self.session_repo, self.player_repo)
        self.assertFalse(removed.success)
        added = services.add_player(
            self.session_id, "Late", self.session_repo, self.player_repo, self.transaction_repo
        )
        self.assertFalse(added.success)
        self.assertEqual(len(self.player_repo.list_players(self.session_id)), 1)

    def test_remove_player_before_finalize(self):
        player_id = self._add("Alice")
        result = services.remove_player(self.session_id, player_id, self.session_repo, self.player_repo)
        self.assertTrue(result.success)
        self.assertEqual(self.player_repo.list_players(self.session_id), [])

        missing = services.remove_player(self.session_id, player_id, self.session_repo, self.player_repo)
        self.assertFalse(missing.success)

    def test_unknown_session_is_denied(self):
        result = services.add_player(
            "nope", "Alice", self.session_repo, self.player_repo, self.transaction_repo
        )
        self.assertFalse(result.success)
        self.assertEqual(result.error_message, "session not loaded.")

    def test_register_is_idempotent_and_logout_clears_viewer(self):
        first = services.register_profile(self.ctx, self.identity_repo)
        second = services.register_profile(self.ctx, self.identity_repo)
        self.assertTrue(first.success)
        self.assertEqual(first.entity_id, second.entity_id)

        viewer = resolve_viewer(self.ctx, self.identity_repo, self.club_repo)
        self.assertEqual(viewer.identity.id, first.entity_id)
        self.assertTrue(viewer.needs_onboarding)

        self.assertTrue(services.logout(self.ctx, viewer, self.identity_repo).success)
        self.assertIsNone(viewer.identity)
        self.assertIsNone(resolve_viewer(self.ctx, self.identity_repo, self.club_repo).identity)

    def test_create_and_join_club(self):
        services.register_profile(self.ctx, self.identity_repo)
        owner = resolve_viewer(self.ctx, self.identity_repo, self.club_repo)
        created = services.create_club("Home game", owner, self.club_repo)
        self.assertTrue(created.success)
        self.assertFalse(owner.needs_onboarding)
        code = self.club_repo.get_club(created.entity_id).join_code

        guest_ctx = ExternalContext(provider="discord", provider_user_id="999", display_name="Jane")
        services.register_profile(guest_ctx, self.identity_repo)
        guest = resolve_viewer(guest_ctx, self.identity_repo, self.club_repo)
        self.assertFalse(services.join_club_by_code("BADCODE", guest, self.club_repo).success)
        joined = services.join_club_by_code(code.lower(), guest, self.club_repo)
        self.assertTrue(joined.success)
        self.assertEqual(guest.active_club_id, created.entity_id)

    def test_club_actions_require_identity(self):
        viewer = ViewerContext()
        self.assertFalse(services.create_club("x", viewer, self.club_repo).success)
        self.assertFalse(services.join_club_by_code("ABC", viewer, self.club_repo).success)

    def test_link_player_identity_rules(self):
        profile = services.register_profile(self.ctx, self.identity_repo)
        viewer = resolve_viewer(self.ctx, self.identity_repo, self.club_repo)
        alice = self._add("Alice")
        bob = self._add("Bob")

        linked = services.link_player_identity(
            self.session_id, alice, viewer, self.session_repo, self.player_repo
        )
        self.assertTrue(linked.success)
        players = {p.id: p for p in self.player_repo.list_players(self.session_id)}
        self.assertEqual(players[alice].profile_id, profile.entity_id)

        twice = services.link_player_identity(
            self.session_id, bob, viewer, self.session_repo, self.player_repo
        )
        self.assertFalse(twice.success)
        self.assertIn("Alice", twice.error_message)

        eve_ctx = ExternalContext(provider="discord", provider_user_id="2", display_name="Eve")
        services.register_profile(eve_ctx, self.identity_repo)
        other = resolve_viewer(eve_ctx, self.identity_repo, self.club_repo)
        taken = services.link_player_identity(
            self.session_id, alice, other, self.session_repo, self.player_repo
        )
        self.assertFalse(taken.success)

    def test_link_identity_rejected_after_finalize(self):
        services.register_profile(self.ctx, self.identity_repo)
        viewer = resolve_viewer(self.ctx, self.identity_repo, self.club_repo)
        alice = self._add("Alice")
        self.session_repo.add_session(make_session(self.session_id, finalized_at=EPOCH))

        result = services.link_player_identity(
            self.session_id, alice, viewer, self.session_repo, self.player_repo
        )
        self.assertFalse(result.success)
        self.assertIn("finalized", result.error_message)


if __name__ == "__main__":
    unittest.main()
