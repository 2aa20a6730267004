from __future__ import annotations

import sqlite3
from typing import List

from domain.models import Transaction, TransactionType
from domain.repositories import TransactionRepository

from .sqlite_support import connect, from_db_timestamp, to_db_timestamp


class SqliteTransactionRepository(TransactionRepository):
    """
    SQLite-backed ledger. Rows are only ever inserted.

    `amount` is stored as TEXT so the exact decimal entered survives the
    round trip; it is parsed to float on read.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _ensure_table(self) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    player_id TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('buyin', 'cashout')),
                    amount TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_session ON transactions (session_id)"
            )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=str(row["id"]),
            session_id=str(row["session_id"]),
            player_id=str(row["player_id"]),
            type=TransactionType(row["type"]),
            amount=float(row["amount"]),
            created_at=from_db_timestamp(row["created_at"]),
        )

    def list_transactions(self, session_id: str) -> List[Transaction]:
        with connect(self._db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, session_id, player_id, type, amount, created_at
                FROM transactions
                WHERE session_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (session_id,),
            ).fetchall()
            return [self._to_domain(row) for row in rows]

    def add_transaction(self, transaction: Transaction) -> None:
        with connect(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO transactions (id, session_id, player_id, type, amount, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    transaction.id,
                    transaction.session_id,
                    transaction.player_id,
                    TransactionType(transaction.type).value,
                    str(transaction.amount),
                    to_db_timestamp(transaction.created_at),
                ),
            )
