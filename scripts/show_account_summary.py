#!/usr/bin/env python3
"""Show every account's realized balance with its category breakdown."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import pandas as pd

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from budget_planner.config import EXPORTS_DIR, configure_logging, ensure_data_directories
from budget_planner.formatting import format_currency
from budget_planner.service import open_service


def main(owner: str, db_path: Optional[str] = None, export: bool = False) -> int:
    service = open_service(owner, db_path)
    try:
        summaries = service.account_summary()
    finally:
        service.store.close()

    if not summaries:
        print(f"No accounts found for {owner}.")
        return 0

    overview = pd.DataFrame([
        {
            'Account': s.account.name,
            'Type': s.account.type.value,
            'In': s.totals.total_in,
            'Out': s.totals.total_out,
            'Balance': s.totals.balance,
        }
        for s in summaries
    ])
    print(f"Accounts for {owner}: {len(overview)}")
    print(f"Net worth: {format_currency(overview['Balance'].sum())}")
    print()
    print(overview.to_string(index=False, formatters={
        col: format_currency for col in ('In', 'Out', 'Balance')
    }))

    for summary in summaries:
        if not summary.totals.categories:
            continue
        breakdown = pd.DataFrame([c.to_dict() for c in summary.totals.categories])
        print(f"\n{summary.account.name} by category:")
        print(breakdown[['name', 'in', 'out', 'balance']].to_string(index=False))

    if export:
        ensure_data_directories()
        target = EXPORTS_DIR / f"account_summary_{owner}.csv"
        overview.to_csv(target, index=False)
        print(f"\nSaved summary to {target}")
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show account balances and category breakdowns.')
    parser.add_argument('--owner', required=True, help='Owner id whose ledger to read')
    parser.add_argument('--db', default=None, help='Path to the SQLite database (defaults to config)')
    parser.add_argument('--export', action='store_true', help='Also write the overview to data/exports as CSV')
    args = parser.parse_args()
    configure_logging()
    sys.exit(main(args.owner, db_path=args.db, export=args.export))
