from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import psycopg2
import psycopg2.extensions

from domain.errors import PersistenceError


@contextmanager
def cursor(db_params: dict) -> Iterator[psycopg2.extensions.cursor]:
    """
    Yield a cursor inside a transaction that commits on success.

    psycopg2's connection context manager ends the transaction but does not
    close the connection, so it is closed here explicitly.
    """

    try:
        conn = psycopg2.connect(**db_params)
    except psycopg2.Error as exc:
        raise PersistenceError(str(exc).strip()) from exc

    try:
        with conn:
            with conn.cursor() as cur:
                yield cur
    except psycopg2.Error as exc:
        raise PersistenceError(str(exc).strip()) from exc
    finally:
        conn.close()
