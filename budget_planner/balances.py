"""Account balances derived from the settled part of the ledger.

Amounts are stored as positive magnitudes. Direction comes from which side of
the row the account sits on: money arriving through ``to_account_id`` adds,
money leaving through ``from_account_id`` subtracts. Only PAID rows count.

On the receiving side of a TRANSFER the money is filed under
``to_category_id`` (when set), so a transfer whose two category ids differ
moves money between two category ledgers, one per account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import Category, Transaction, TransactionType

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = 'Unknown'

CategoryLookup = Callable[[int], Optional[Category]]


@dataclass
class CategoryBalance:
    category_id: int
    name: str
    total_in: float = 0.0
    total_out: float = 0.0

    @property
    def balance(self) -> float:
        return self.total_in - self.total_out

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.category_id,
            'name': self.name,
            'in': self.total_in,
            'out': self.total_out,
            'balance': self.balance,
        }


@dataclass
class AccountBalance:
    account_id: int
    total_in: float = 0.0
    total_out: float = 0.0
    categories: List[CategoryBalance] = field(default_factory=list)

    @property
    def balance(self) -> float:
        return self.total_in - self.total_out

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'balance': self.balance,
            'total_in': self.total_in,
            'total_out': self.total_out,
            'category_balances': [c.to_dict() for c in self.categories],
        }


class CategoryNames:
    """Resolve category names, asking ``lookup`` at most once per id."""

    def __init__(self, lookup: CategoryLookup) -> None:
        self._lookup = lookup
        self._names: Dict[int, str] = {}

    def __call__(self, category_id: int) -> str:
        if category_id not in self._names:
            category = self._lookup(category_id)
            if category is None:
                logger.debug(f"Category {category_id} has no matching row; reporting as {UNKNOWN_CATEGORY}")
            self._names[category_id] = category.name if category is not None else UNKNOWN_CATEGORY
        return self._names[category_id]


def lookup_from_mapping(categories: Dict[int, Category]) -> CategoryLookup:
    return categories.get


def credited_category_id(txn: Transaction) -> int:
    """Category that receives the money on the ``to_account_id`` side."""
    if txn.type == TransactionType.TRANSFER and txn.to_category_id:
        return txn.to_category_id
    return txn.category_id


def compute_account_balance(
    account_id: int,
    transactions: Iterable[Transaction],
    lookup_category: CategoryLookup,
) -> AccountBalance:
    """Net realized balance of one account, with a per-category breakdown.

    Args:
        account_id: Account to balance
        transactions: Rows touching the account. Rows that are not PAID, or
            that do not touch the account, are ignored.
        lookup_category: Returns the ``Category`` for an id, or ``None`` for a
            dangling reference. A ``CategoryNames`` instance may be passed to
            share the name cache across several accounts.

    Returns:
        ``AccountBalance`` whose categories are sorted by name, ignoring case.
    """
    names = lookup_category if isinstance(lookup_category, CategoryNames) else CategoryNames(lookup_category)
    result = AccountBalance(account_id=account_id)
    buckets: Dict[int, CategoryBalance] = {}

    def bucket(category_id: int) -> CategoryBalance:
        if category_id not in buckets:
            buckets[category_id] = CategoryBalance(category_id=category_id, name=names(category_id))
        return buckets[category_id]

    for txn in transactions:
        if not txn.is_settled or not txn.touches(account_id):
            continue
        if txn.from_account_id == account_id:
            result.total_out += txn.amount
            bucket(txn.category_id).total_out += txn.amount
        if txn.to_account_id == account_id:
            result.total_in += txn.amount
            bucket(credited_category_id(txn)).total_in += txn.amount

    result.categories = sorted(buckets.values(), key=lambda c: (c.name.casefold(), c.name, c.category_id))
    logger.debug(f"Account {account_id}: balance {result.balance} across {len(buckets)} categories")
    return result
