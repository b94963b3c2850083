"""Report building on top of the balance aggregator.

This module assembles the summary views shown to the user:

* ``account_summary`` - every account's balance with its category breakdown
* ``monthly_summary`` - paid vs planned totals for one month
* ``category_detail`` - the settled movements behind one account/category cell
* ``month_overview`` - one totals row per month for list views

Monthly totals are computed with pandas group sums over a small frame built
from the month's transactions.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .balances import AccountBalance, CategoryLookup, CategoryNames, compute_account_balance
from .models import Account, Month, Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ['id', 'month_id', 'type', 'status', 'amount', 'category_id']

DIRECTION_IN = 'in'
DIRECTION_OUT = 'out'


# ---------------------------------------------------------------------------
# Result records
# ---------------------------------------------------------------------------


@dataclass
class FlowTotals:
    income: float = 0.0
    spending: float = 0.0
    transfers: float = 0.0

    @property
    def net(self) -> float:
        # Transfers only move money between the user's own accounts
        return self.income - self.spending

    def to_dict(self) -> Dict[str, float]:
        return {
            'income': self.income,
            'spending': self.spending,
            'transfers': self.transfers,
            'net': self.net,
        }


@dataclass
class CategoryFlow:
    category_id: int
    name: str
    income: float = 0.0
    spending: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.spending

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.category_id,
            'name': self.name,
            'income': self.income,
            'spending': self.spending,
            'net': self.net,
        }


@dataclass
class MonthlySummary:
    month_id: int
    month: int
    year: int
    total_transactions: int
    paid: FlowTotals
    planned: FlowTotals
    all: FlowTotals
    category_breakdown: List[CategoryFlow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'month_id': self.month_id,
            'month': self.month,
            'year': self.year,
            'total_transactions': self.total_transactions,
            'paid': self.paid.to_dict(),
            'planned': self.planned.to_dict(),
            'all': self.all.to_dict(),
            'category_breakdown': [c.to_dict() for c in self.category_breakdown],
        }


@dataclass
class AccountSummary:
    account: Account
    totals: AccountBalance

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.account.id,
            'name': self.account.name,
            'type': self.account.type.value,
            'notes': self.account.notes,
            'balance': self.totals.balance,
            'total_in': self.totals.total_in,
            'total_out': self.totals.total_out,
            'categories': [c.to_dict() for c in self.totals.categories],
        }


@dataclass
class DirectedTransaction:
    transaction: Transaction
    direction: str

    def to_dict(self) -> Dict[str, Any]:
        values = self.transaction.to_dict()
        values['direction'] = self.direction
        return values


@dataclass
class CategoryDetail:
    account_id: int
    category_id: int
    total_in: float = 0.0
    total_out: float = 0.0
    transactions: List[DirectedTransaction] = field(default_factory=list)

    @property
    def balance(self) -> float:
        return self.total_in - self.total_out

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'category_id': self.category_id,
            'total_in': self.total_in,
            'total_out': self.total_out,
            'balance': self.balance,
            'transactions': [t.to_dict() for t in self.transactions],
        }


@dataclass
class MonthOverview:
    month: Month
    template_name: Optional[str]
    transaction_count: int = 0
    income: float = 0.0
    spending: float = 0.0
    planned_income: float = 0.0
    planned_spending: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.spending

    def to_dict(self) -> Dict[str, Any]:
        values = self.month.to_dict()
        values.update({
            'budget_template_name': self.template_name,
            'transaction_count': self.transaction_count,
            'income': self.income,
            'spending': self.spending,
            'planned_income': self.planned_income,
            'planned_spending': self.planned_spending,
            'net': self.net,
        })
        return values


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Flatten transactions into the frame the monthly reports group over."""
    rows = [
        {
            'id': t.id,
            'month_id': t.month_id,
            'type': t.type.value,
            'status': t.status.value,
            'amount': float(t.amount),
            'category_id': t.category_id,
        }
        for t in transactions
    ]
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    frame['amount'] = frame['amount'].astype(float)
    return frame


def flow_totals(frame: pd.DataFrame) -> FlowTotals:
    if frame.empty:
        return FlowTotals()
    by_type = frame.groupby('type')['amount'].sum()
    return FlowTotals(
        income=float(by_type.get(TransactionType.INCOME.value, 0.0)),
        spending=float(by_type.get(TransactionType.SPENDING.value, 0.0)),
        transfers=float(by_type.get(TransactionType.TRANSFER.value, 0.0)),
    )


def category_breakdown(frame: pd.DataFrame, names: CategoryNames) -> List[CategoryFlow]:
    """Income and spending per category over PAID, non-transfer rows."""
    settled = frame[
        (frame['status'] == TransactionStatus.PAID.value)
        & (frame['type'] != TransactionType.TRANSFER.value)
    ]
    if settled.empty:
        return []
    sums = settled.groupby(['category_id', 'type'])['amount'].sum()
    flows = [
        CategoryFlow(
            category_id=int(category_id),
            name=names(int(category_id)),
            income=float(sums.get((category_id, TransactionType.INCOME.value), 0.0)),
            spending=float(sums.get((category_id, TransactionType.SPENDING.value), 0.0)),
        )
        for category_id in settled['category_id'].unique()
    ]
    return sorted(flows, key=lambda c: (c.name.casefold(), c.name, c.category_id))


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def account_summary(
    accounts: Sequence[Account],
    transactions: Iterable[Transaction],
    lookup_category: CategoryLookup,
) -> List[AccountSummary]:
    """Balance every account, sharing one category-name cache between them."""
    names = lookup_category if isinstance(lookup_category, CategoryNames) else CategoryNames(lookup_category)
    by_account: Dict[int, List[Transaction]] = defaultdict(list)
    for txn in transactions:
        if not txn.is_settled:
            continue
        for account_id in {txn.from_account_id, txn.to_account_id} - {None}:
            by_account[account_id].append(txn)
    return [
        AccountSummary(account=a, totals=compute_account_balance(a.id, by_account.get(a.id, []), names))
        for a in accounts
    ]


def monthly_summary(
    month: Month,
    transactions: Iterable[Transaction],
    lookup_category: CategoryLookup,
) -> MonthlySummary:
    """Paid, planned and overall totals for one month plus a category breakdown.

    PENDING and SKIPPED rows only show up in ``all``.
    """
    names = lookup_category if isinstance(lookup_category, CategoryNames) else CategoryNames(lookup_category)
    frame = transactions_to_frame(t for t in transactions if t.month_id == month.id)
    summary = MonthlySummary(
        month_id=month.id,
        month=month.month,
        year=month.year,
        total_transactions=len(frame),
        paid=flow_totals(frame[frame['status'] == TransactionStatus.PAID.value]),
        planned=flow_totals(frame[frame['status'] == TransactionStatus.PLANNED.value]),
        all=flow_totals(frame),
        category_breakdown=category_breakdown(frame, names),
    )
    logger.debug(f"Monthly summary for {month.year}-{month.month:02d}: {summary.total_transactions} transaction(s)")
    return summary


def matches_category_cell(txn: Transaction, account_id: int, category_id: int) -> bool:
    if txn.from_account_id == account_id and txn.category_id == category_id:
        return True
    if txn.to_account_id == account_id:
        return txn.category_id == category_id or txn.to_category_id == category_id
    return False


def category_detail(
    account_id: int,
    category_id: int,
    transactions: Iterable[Transaction],
) -> CategoryDetail:
    """Settled movements for one (account, category) pair, newest first.

    Rows where the account receives the money are tagged ``in``; every other
    matching row is ``out``.
    """
    detail = CategoryDetail(account_id=account_id, category_id=category_id)
    matching = [
        t for t in transactions
        if t.is_settled and matches_category_cell(t, account_id, category_id)
    ]
    matching.sort(key=lambda t: (t.date, t.id or 0), reverse=True)
    for txn in matching:
        if txn.to_account_id == account_id:
            detail.total_in += txn.amount
            direction = DIRECTION_IN
        else:
            detail.total_out += txn.amount
            direction = DIRECTION_OUT
        detail.transactions.append(DirectedTransaction(transaction=txn, direction=direction))
    return detail


def month_overview(
    months: Sequence[Month],
    transactions: Iterable[Transaction],
    template_names: Optional[Dict[int, str]] = None,
) -> List[MonthOverview]:
    """One totals row per month, newest month first."""
    template_names = template_names or {}
    frame = transactions_to_frame(transactions)
    counts = frame.groupby('month_id').size()
    sums = frame.groupby(['month_id', 'status', 'type'])['amount'].sum()

    def total(month_id: int, status: TransactionStatus, kind: TransactionType) -> float:
        return float(sums.get((month_id, status.value, kind.value), 0.0))

    rows = []
    for month in sorted(months, key=lambda m: (m.year, m.month), reverse=True):
        rows.append(MonthOverview(
            month=month,
            template_name=template_names.get(month.budget_template_id) if month.budget_template_id else None,
            transaction_count=int(counts.get(month.id, 0)),
            income=total(month.id, TransactionStatus.PAID, TransactionType.INCOME),
            spending=total(month.id, TransactionStatus.PAID, TransactionType.SPENDING),
            planned_income=total(month.id, TransactionStatus.PLANNED, TransactionType.INCOME),
            planned_spending=total(month.id, TransactionStatus.PLANNED, TransactionType.SPENDING),
        ))
    return rows
