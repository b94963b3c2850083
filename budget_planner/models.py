"""Ledger records and the enums that constrain them.

Rows come out of SQLite as ``sqlite3.Row`` objects and are turned into the
dataclasses below with ``from_row``. ``to_dict`` produces plain values
(enum values, ISO dates) for whatever transport layer sits in front.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional


class AccountType(str, Enum):
    CHECKING = 'checking'
    SAVINGS = 'savings'
    CREDIT_CARD = 'credit-card'
    CASH = 'cash'
    INVESTMENT = 'investment'


class TransactionType(str, Enum):
    INCOME = 'INCOME'
    SPENDING = 'SPENDING'
    TRANSFER = 'TRANSFER'


class TransactionStatus(str, Enum):
    PLANNED = 'PLANNED'
    PAID = 'PAID'
    PENDING = 'PENDING'
    SKIPPED = 'SKIPPED'


# Order the status toggle walks through; every status is reachable and none is terminal
STATUS_CYCLE: List[TransactionStatus] = [
    TransactionStatus.PLANNED,
    TransactionStatus.PAID,
    TransactionStatus.PENDING,
    TransactionStatus.SKIPPED,
]


def next_status(status: TransactionStatus) -> TransactionStatus:
    """Return the status that follows ``status`` in the toggle cycle."""
    index = STATUS_CYCLE.index(TransactionStatus(status))
    return STATUS_CYCLE[(index + 1) % len(STATUS_CYCLE)]


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


class _Record:
    """Shared row conversion for the ledger dataclasses."""

    @classmethod
    def from_row(cls, row: Any):
        keys = set(row.keys())
        values = {f.name: row[f.name] for f in fields(cls) if f.name in keys}
        return cls(**cls._coerce(values))

    @classmethod
    def _coerce(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        return values

    def to_dict(self) -> Dict[str, Any]:
        return {key: _plain(value) for key, value in asdict(self).items()}


@dataclass
class Account(_Record):
    id: int
    owner_id: str
    name: str
    type: AccountType
    notes: Optional[str] = None

    @classmethod
    def _coerce(cls, values):
        values['type'] = AccountType(values['type'])
        return values


@dataclass
class Category(_Record):
    id: int
    owner_id: str
    name: str


@dataclass
class BudgetTemplate(_Record):
    id: int
    owner_id: str
    name: str


@dataclass
class Month(_Record):
    id: int
    owner_id: str
    month: int
    year: int
    budget_template_id: Optional[int] = None


@dataclass
class BudgetTransactionDefinition(_Record):
    id: Optional[int]
    owner_id: str
    template_id: int
    type: TransactionType
    amount: float
    category_id: int
    description: Optional[str] = None
    to_category_id: Optional[int] = None
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None

    @classmethod
    def _coerce(cls, values):
        values['type'] = TransactionType(values['type'])
        return values


@dataclass
class Transaction(_Record):
    id: Optional[int]
    owner_id: str
    type: TransactionType
    date: date
    amount: float
    status: TransactionStatus
    category_id: int
    month_id: int
    description: Optional[str] = None
    to_category_id: Optional[int] = None
    from_account_id: Optional[int] = None
    to_account_id: Optional[int] = None

    @classmethod
    def _coerce(cls, values):
        values['type'] = TransactionType(values['type'])
        values['status'] = TransactionStatus(values['status'])
        if isinstance(values.get('date'), str):
            values['date'] = date.fromisoformat(values['date'][:10])
        return values

    @property
    def is_settled(self) -> bool:
        return self.status == TransactionStatus.PAID

    def touches(self, account_id: int) -> bool:
        return account_id in (self.from_account_id, self.to_account_id)
