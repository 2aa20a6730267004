import os
import sqlite3
import tempfile
import unittest
from datetime import timedelta

from application.lifecycle import LifecycleController
from application.state import SessionStateStore
from config import Settings
from domain.errors import PersistenceError
from domain.models import Club, ClubMembership, Currency, MemberRole, Profile, TransactionType
from domain.stage import SessionStage
from infrastructure.db.factory import build_repositories
from infrastructure.db.session_repository_sqlite import SqliteSessionRepository
from tests.fakes import EPOCH, make_player, make_session, make_tx


class SqliteRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self._tmp.name, "poker.db")
        self.repos = build_repositories(Settings(db_backend="sqlite", db_path=self.db_path))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_session_round_trip_and_conditional_marks(self):
        sessions = self.repos.sessions
        sessions.add_session(make_session("s1", currency=Currency.EUR, club_id="c1"))

        loaded = sessions.get_session("s1")
        self.assertIs(loaded.currency, Currency.EUR)
        self.assertEqual(loaded.created_at, EPOCH)
        self.assertIsNone(loaded.chip_entry_started_at)

        self.assertTrue(sessions.mark_chip_entry_started("s1", EPOCH))
        self.assertFalse(sessions.mark_chip_entry_started("s1", EPOCH + timedelta(hours=1)))
        self.assertEqual(sessions.get_session("s1").chip_entry_started_at, EPOCH)

        self.assertTrue(sessions.mark_finalized("s1", EPOCH))
        self.assertFalse(sessions.mark_finalized("s1", EPOCH + timedelta(hours=1)))
        self.assertFalse(sessions.mark_chip_entry_started("missing", EPOCH))
        self.assertIsNone(sessions.get_session("missing"))
        self.assertEqual([s.id for s in sessions.list_sessions(club_id="c1")], ["s1"])
        self.assertEqual(sessions.list_sessions(club_id="other"), [])

    def test_ledger_is_ordered_by_created_at(self):
        txs = self.repos.transactions
        txs.add_transaction(make_tx("late", "p1", minute=5))
        txs.add_transaction(make_tx("early", "p1", TransactionType.CASHOUT, 12.5, minute=1))
        txs.add_transaction(make_tx("elsewhere", "p1", session_id="s2"))

        loaded = txs.list_transactions("s1")
        self.assertEqual([t.id for t in loaded], ["early", "late"])
        self.assertIs(loaded[0].type, TransactionType.CASHOUT)
        self.assertEqual(loaded[0].amount, 12.5)

    def test_players_roster_and_profile_link(self):
        players = self.repos.players
        players.add_player(make_player("p2", minute=2))
        players.add_player(make_player("p1", minute=1))
        self.assertEqual([p.id for p in players.list_players("s1")], ["p1", "p2"])

        self.assertTrue(players.link_profile("p1", "u1"))
        self.assertFalse(players.link_profile("p1", "u2"))
        self.assertEqual(players.list_players("s1")[0].profile_id, "u1")

        players.remove_player("p2")
        self.assertEqual([p.id for p in players.list_players("s1")], ["p1"])

    def test_identity_and_clubs(self):
        ids = self.repos.identities
        ids.add_profile(Profile(id="u1", display_name="Alice"))
        ids.set_external_identity("discord", "42", "u1")
        self.assertEqual(ids.find_profile_by_external("discord", "42").display_name, "Alice")
        ids.clear_external_identity("discord", "42")
        self.assertIsNone(ids.find_profile_by_external("discord", "42"))

        clubs = self.repos.clubs
        clubs.add_club(Club(id="c1", name="Home", join_code="ABC123"))
        clubs.add_membership(ClubMembership(club_id="c1", profile_id="u1", role=MemberRole.OWNER))
        clubs.add_membership(ClubMembership(club_id="c1", profile_id="u1"))
        self.assertEqual(clubs.get_by_join_code("ABC123").id, "c1")
        memberships = clubs.memberships_for("u1")
        self.assertEqual(len(memberships), 1)
        self.assertIs(memberships[0].role, MemberRole.OWNER)

    def test_duplicate_insert_raises_persistence_error(self):
        self.repos.sessions.add_session(make_session("s1"))
        with self.assertRaises(PersistenceError):
            self.repos.sessions.add_session(make_session("s1"))

    def test_legacy_sessions_table_gains_chip_entry_column(self):
        legacy = os.path.join(self._tmp.name, "legacy.db")
        conn = sqlite3.connect(legacy)
        with conn:
            conn.execute(
                """
                CREATE TABLE sessions (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    currency TEXT NOT NULL DEFAULT 'USD',
                    created_at TEXT NOT NULL,
                    finalized_at TEXT,
                    club_id TEXT
                )
                """
            )
            conn.execute(
                "INSERT INTO sessions (id, name, currency, created_at) VALUES ('old', 'Old', 'USD', ?)",
                (EPOCH.isoformat(),),
            )
        conn.close()

        repo = SqliteSessionRepository(legacy)
        self.assertIsNone(repo.get_session("old").chip_entry_started_at)
        self.assertTrue(repo.mark_chip_entry_started("old", EPOCH))


class SqliteLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def test_full_lifecycle_against_sqlite(self):
        with tempfile.TemporaryDirectory() as tmp:
            repos = build_repositories(Settings(db_path=os.path.join(tmp, "poker.db")))
            repos.sessions.add_session(make_session("s1"))
            store = SessionStateStore("s1", repos.sessions, repos.players, repos.transactions)
            controller = LifecycleController(store, repos.sessions)

            await controller.reload()
            self.assertIs(controller.stage, SessionStage.PLAYER_SETUP)

            repos.players.add_player(make_player("p1"))
            await controller.reload()
            self.assertIs(controller.stage, SessionStage.BUYINS)
            self.assertFalse((await controller.start_chip_entry()).success)

            repos.transactions.add_transaction(make_tx("t1", "p1"))
            await controller.reload()
            self.assertTrue((await controller.start_chip_entry()).success)
            self.assertIs(controller.stage, SessionStage.CHIP_ENTRY)

            self.assertTrue((await controller.finalize_session()).success)
            self.assertIs(controller.stage, SessionStage.FINALIZED)


if __name__ == "__main__":
    unittest.main()
