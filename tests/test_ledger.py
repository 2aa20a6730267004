import unittest

from domain.ledger import (
    break_even,
    buyins_of,
    cashouts_of,
    losers,
    player_results,
    players_missing_buyins,
    session_totals,
    winners,
)
from domain.models import TransactionType
from tests.fakes import make_player, make_tx

BUYIN = TransactionType.BUYIN
CASHOUT = TransactionType.CASHOUT


class LedgerQueryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.transactions = [
            make_tx("t1", "p1", BUYIN, 100, minute=1),
            make_tx("t2", "p2", BUYIN, 50, minute=2),
            make_tx("t3", "p1", BUYIN, 100, minute=3),
            make_tx("t4", "p1", CASHOUT, 320, minute=4),
            make_tx("t5", "p1", BUYIN, 999, session_id="other", minute=5),
        ]

    def test_buyins_of_filters_session_player_and_type_in_order(self):
        ids = [t.id for t in buyins_of(self.transactions, "s1", "p1")]
        self.assertEqual(ids, ["t1", "t3"])

    def test_cashouts_of_is_symmetric(self):
        ids = [t.id for t in cashouts_of(self.transactions, "s1", "p1")]
        self.assertEqual(ids, ["t4"])
        self.assertEqual(cashouts_of(self.transactions, "s1", "p2"), [])

    def test_unknown_session_or_player_is_empty_not_an_error(self):
        self.assertEqual(buyins_of(self.transactions, "nope", "p1"), [])
        self.assertEqual(buyins_of(self.transactions, "s1", "ghost"), [])

    def test_players_missing_buyins(self):
        players = [make_player("p1"), make_player("p2"), make_player("p3")]
        self.assertEqual(players_missing_buyins("s1", players, self.transactions), {"p3"})

    def test_buyin_in_another_session_does_not_count(self):
        players = [make_player("p9")]
        txs = [make_tx("t1", "p9", BUYIN, 100, session_id="other")]
        self.assertEqual(players_missing_buyins("s1", players, txs), {"p9"})

    def test_cashout_alone_does_not_satisfy_buyin(self):
        players = [make_player("p1")]
        txs = [make_tx("t1", "p1", CASHOUT, 0)]
        self.assertEqual(players_missing_buyins("s1", players, txs), {"p1"})

    def test_empty_roster_has_nobody_missing(self):
        self.assertEqual(players_missing_buyins("s1", [], self.transactions), set())


class LedgerResultTests(unittest.TestCase):
    def test_player_results_and_totals(self):
        players = [make_player("alice"), make_player("bob"), make_player("carol")]
        txs = [
            make_tx("t1", "alice", BUYIN, 100),
            make_tx("t2", "bob", BUYIN, 100),
            make_tx("t3", "carol", BUYIN, 100),
            make_tx("t4", "alice", CASHOUT, 180),
            make_tx("t5", "bob", CASHOUT, 20),
            make_tx("t6", "carol", CASHOUT, 100.004),
        ]
        results = player_results("s1", players, txs)
        self.assertEqual([r.player.id for r in results], ["alice", "bob", "carol"])
        self.assertAlmostEqual(results[0].profit_loss, 80)
        self.assertAlmostEqual(results[1].profit_loss, -80)

        self.assertEqual([r.player.id for r in winners(results)], ["alice"])
        self.assertEqual([r.player.id for r in losers(results)], ["bob"])
        self.assertEqual([r.player.id for r in break_even(results)], ["carol"])

        totals = session_totals("s1", players, txs)
        self.assertAlmostEqual(totals.total_buyins, 300)
        self.assertAlmostEqual(totals.total_cashouts, 300.004)
        self.assertAlmostEqual(totals.total_profit_loss, 0.004)


if __name__ == "__main__":
    unittest.main()
