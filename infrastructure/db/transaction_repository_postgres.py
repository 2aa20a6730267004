from __future__ import annotations

from typing import List

from domain.models import Transaction, TransactionType
from domain.repositories import TransactionRepository

from .postgres_support import cursor


class PostgresTransactionRepository(TransactionRepository):
    """
    Postgres-backed ledger.

    `amount` is NUMERIC in the database; psycopg2 hands it back as a
    `Decimal`, which is converted to float for the domain model.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_table()

    def _ensure_table(self) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    player_id TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('buyin', 'cashout')),
                    amount NUMERIC(12, 2) NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )

    @staticmethod
    def _to_domain(row: tuple) -> Transaction:
        return Transaction(
            id=str(row[0]),
            session_id=str(row[1]),
            player_id=str(row[2]),
            type=TransactionType(row[3]),
            amount=float(row[4]),
            created_at=row[5],
        )

    def list_transactions(self, session_id: str) -> List[Transaction]:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                SELECT id, session_id, player_id, type, amount, created_at
                FROM transactions
                WHERE session_id = %s
                ORDER BY created_at ASC
                """,
                (session_id,),
            )
            return [self._to_domain(row) for row in cur.fetchall()]

    def add_transaction(self, transaction: Transaction) -> None:
        with cursor(self._db_params) as cur:
            cur.execute(
                """
                INSERT INTO transactions (id, session_id, player_id, type, amount, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    transaction.id,
                    transaction.session_id,
                    transaction.player_id,
                    TransactionType(transaction.type).value,
                    transaction.amount,
                    transaction.created_at,
                ),
            )
