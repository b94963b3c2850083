#!/usr/bin/env python3
"""Show paid, planned and overall totals for one budget month."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from budget_planner.config import configure_logging
from budget_planner.formatting import format_currency, month_label
from budget_planner.service import open_service

TRANSACTION_COLUMNS = ['Date', 'Type', 'Status', 'Amount', 'Category', 'From Account', 'To Account', 'Description']


def main(owner: str, month: int, year: int, db_path: Optional[str] = None) -> int:
    service = open_service(owner, db_path)
    try:
        found = service.store.find_month(owner, month, year)
        if found is None:
            print(f"No budget month {month_label(month, year)} for {owner}.")
            return 1
        summary = service.monthly_summary(found.id)
        rows = service.store.transactions_frame(owner, month_id=found.id)
    finally:
        service.store.close()

    print(f"{month_label(month, year)}: {summary.total_transactions} transaction(s)")
    totals = pd.DataFrame(
        [summary.paid.to_dict(), summary.planned.to_dict(), summary.all.to_dict()],
        index=['Paid', 'Planned', 'All'],
    )
    print(totals.to_string(formatters={col: format_currency for col in totals.columns}))

    if summary.category_breakdown:
        breakdown = pd.DataFrame([c.to_dict() for c in summary.category_breakdown])
        print("\nPaid by category:")
        print(breakdown[['name', 'income', 'spending', 'net']].to_string(index=False))

    if not rows.empty:
        columns = [col for col in TRANSACTION_COLUMNS if col in rows.columns]
        print("\nTransactions:")
        print(rows[columns].to_string(index=False))
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show the totals for one budget month.')
    parser.add_argument('--owner', required=True, help='Owner id whose ledger to read')
    parser.add_argument('--month', type=int, required=True, help='Month number (1-12)')
    parser.add_argument('--year', type=int, required=True, help='Four digit year')
    parser.add_argument('--db', default=None, help='Path to the SQLite database (defaults to config)')
    args = parser.parse_args()
    configure_logging()
    sys.exit(main(args.owner, args.month, args.year, db_path=args.db))
