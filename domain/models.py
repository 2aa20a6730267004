from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Currency(str, Enum):
    USD = "USD"
    ILS = "ILS"
    EUR = "EUR"


class TransactionType(str, Enum):
    BUYIN = "buyin"
    CASHOUT = "cashout"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


def currency_symbol(currency: Currency | str) -> str:
    """Display symbol for a session currency. Unknown codes fall back to `$`."""

    value = currency.value if isinstance(currency, Currency) else currency
    if value == Currency.ILS.value:
        return "₪"
    if value == Currency.EUR.value:
        return "€"
    return "$"


@dataclass
class Session:
    """
    One tracked cash game.

    The two optional timestamps are the only stage-relevant facts.
    `finalized_at` is terminal: once set it is never cleared.
    """

    id: str
    name: str
    currency: Currency
    created_at: datetime
    finalized_at: Optional[datetime] = None
    chip_entry_started_at: Optional[datetime] = None
    club_id: Optional[str] = None

    @property
    def is_finalized(self) -> bool:
        return self.finalized_at is not None

    @property
    def chip_entry_started(self) -> bool:
        return self.chip_entry_started_at is not None


@dataclass
class Player:
    """A seat in a session. `profile_id` links it to an authenticated profile."""

    id: str
    session_id: str
    name: str
    created_at: datetime
    profile_id: Optional[str] = None


@dataclass
class Transaction:
    """
    A single ledger entry.

    Entries are append-only: a correction is a new entry, never an edit.
    """

    id: str
    session_id: str
    player_id: str
    type: TransactionType
    amount: float
    created_at: datetime


@dataclass
class Profile:
    """Authenticated identity, independent of any chat provider."""

    id: str
    display_name: str


@dataclass
class Club:
    id: str
    name: str
    join_code: Optional[str] = None


@dataclass
class ClubMembership:
    club_id: str
    profile_id: str
    role: MemberRole = MemberRole.MEMBER
