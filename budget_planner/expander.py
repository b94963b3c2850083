"""Turn a budget template's definitions into a month's planned transactions."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, List

from .models import BudgetTransactionDefinition, Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)


def first_day_of_month(month: int, year: int) -> date:
    return date(year, month, 1)


def expand_definition(
    definition: BudgetTransactionDefinition,
    month_id: int,
    on: date,
) -> Transaction:
    """Draft the planned transaction for a single definition."""
    if definition.type == TransactionType.TRANSFER:
        to_category_id = definition.to_category_id or definition.category_id
    else:
        to_category_id = None
    return Transaction(
        id=None,
        owner_id=definition.owner_id,
        type=definition.type,
        date=on,
        amount=definition.amount,
        description=definition.description,
        status=TransactionStatus.PLANNED,
        category_id=definition.category_id,
        to_category_id=to_category_id,
        month_id=month_id,
        from_account_id=definition.from_account_id,
        to_account_id=definition.to_account_id,
    )


def expand_definitions(
    definitions: Iterable[BudgetTransactionDefinition],
    month_id: int,
    month: int,
    year: int,
) -> List[Transaction]:
    """One unsaved PLANNED transaction per definition, dated the 1st of the month.

    The drafts are returned in definition order and carry no id; saving them
    as one batch is the caller's job.
    """
    on = first_day_of_month(month, year)
    drafts = [expand_definition(d, month_id, on) for d in definitions]
    logger.debug(f"Expanded {len(drafts)} definition(s) for {year}-{month:02d}")
    return drafts
