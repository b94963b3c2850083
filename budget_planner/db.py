from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .config import DB_PATH
from .errors import ConflictError, NotFoundError, StoreError
from .models import (
    Account,
    AccountType,
    BudgetTemplate,
    BudgetTransactionDefinition,
    Category,
    Month,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from .validation import SearchFilters

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    type TEXT NOT NULL,
    notes TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_categories_owner_name ON categories (owner_id, name);

CREATE TABLE IF NOT EXISTS budget_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL,
    modified_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS budget_definitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    template_id INTEGER NOT NULL REFERENCES budget_templates (id) ON DELETE CASCADE,
    type TEXT NOT NULL CHECK (type IN ('INCOME', 'SPENDING', 'TRANSFER')),
    amount REAL NOT NULL CHECK (amount > 0),
    description TEXT,
    category_id INTEGER NOT NULL REFERENCES categories (id) ON DELETE RESTRICT,
    to_category_id INTEGER REFERENCES categories (id) ON DELETE RESTRICT,
    from_account_id INTEGER REFERENCES accounts (id) ON DELETE RESTRICT,
    to_account_id INTEGER REFERENCES accounts (id) ON DELETE RESTRICT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS months (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    month INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
    year INTEGER NOT NULL,
    budget_template_id INTEGER REFERENCES budget_templates (id) ON DELETE SET NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_months_owner_period ON months (owner_id, month, year);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('INCOME', 'SPENDING', 'TRANSFER')),
    date TEXT NOT NULL,
    amount REAL NOT NULL CHECK (amount > 0),
    description TEXT,
    status TEXT NOT NULL CHECK (status IN ('PLANNED', 'PAID', 'PENDING', 'SKIPPED')),
    category_id INTEGER NOT NULL REFERENCES categories (id) ON DELETE RESTRICT,
    to_category_id INTEGER REFERENCES categories (id) ON DELETE RESTRICT,
    month_id INTEGER NOT NULL REFERENCES months (id) ON DELETE CASCADE,
    from_account_id INTEGER REFERENCES accounts (id) ON DELETE RESTRICT,
    to_account_id INTEGER REFERENCES accounts (id) ON DELETE RESTRICT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_txn_owner_month ON transactions (owner_id, month_id);
CREATE INDEX IF NOT EXISTS ix_txn_from_account ON transactions (from_account_id);
CREATE INDEX IF NOT EXISTS ix_txn_to_account ON transactions (to_account_id);
CREATE INDEX IF NOT EXISTS ix_txn_category ON transactions (category_id);
CREATE INDEX IF NOT EXISTS ix_txn_date ON transactions (date);
"""

_TRANSACTION_COLUMNS = (
    'type', 'date', 'amount', 'description', 'status', 'category_id',
    'to_category_id', 'month_id', 'from_account_id', 'to_account_id',
)
_DEFINITION_COLUMNS = (
    'type', 'amount', 'description', 'category_id', 'to_category_id',
    'from_account_id', 'to_account_id',
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _db_value(value: Any) -> Any:
    """Convert enums and dates to SQLite-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return value


class LedgerStore:
    """Owner-scoped persistence for the budget ledger.

    The store holds one SQLite connection between ``open()`` and ``close()``.
    Every read and write takes the caller's ``owner_id``; rows owned by
    someone else behave exactly like rows that do not exist.

    Usage:
        with LedgerStore(path) as store:
            account = store.create_account('user-1', 'Checking', AccountType.CHECKING)
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = str(path) if path is not None else str(DB_PATH)
        self._conn: Optional[sqlite3.Connection] = None
        self._depth = 0

    # Lifecycle -------------------------------------------------------------

    def open(self) -> 'LedgerStore':
        if self._conn is not None:
            return self
        if self.path != ':memory:':
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = sqlite3.connect(self.path, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            logger.error(f"Could not open ledger database at {self.path}: {e}")
            raise StoreError(f"Could not open ledger database: {e}") from e
        self._conn = conn
        logger.debug(f"Opened ledger database at {self.path}")
        return self

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        self._depth = 0
        logger.debug(f"Closed ledger database at {self.path}")

    def __enter__(self) -> 'LedgerStore':
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Ledger store is not open")
        return self._conn

    @contextmanager
    def atomic(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements as one all-or-nothing unit.

        Nested blocks join the outermost one; only the outermost block
        commits or rolls back.
        """
        conn = self._connection()
        outermost = self._depth == 0
        if outermost:
            conn.execute("BEGIN")
        self._depth += 1
        try:
            yield conn
        except sqlite3.IntegrityError as e:
            self._unwind(conn, outermost)
            if 'UNIQUE' in str(e):
                raise ConflictError(f"Duplicate value: {e}") from e
            logger.error(f"Ledger integrity error: {e}")
            raise StoreError(f"Data integrity violation: {e}") from e
        except sqlite3.Error as e:
            self._unwind(conn, outermost)
            logger.error(f"Ledger database error: {e}")
            raise StoreError(f"Database operation failed: {e}") from e
        except BaseException:
            self._unwind(conn, outermost)
            raise
        else:
            self._depth -= 1
            if outermost:
                conn.execute("COMMIT")

    def _unwind(self, conn: sqlite3.Connection, outermost: bool) -> None:
        self._depth -= 1
        if outermost and conn.in_transaction:
            conn.execute("ROLLBACK")

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self._connection().execute(sql, [_db_value(p) for p in params]).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Ledger query failed: {e}")
            raise StoreError(f"Database query failed: {e}") from e

    def _query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    def _get(self, table: str, label: str, owner_id: str, entity_id: int) -> sqlite3.Row:
        row = self._query_one(
            f"SELECT * FROM {table} WHERE id = ? AND owner_id = ?",
            (entity_id, owner_id),
        )
        if row is None:
            logger.warning(f"{label} {entity_id} not found for owner {owner_id}")
            raise NotFoundError(label, entity_id)
        return row

    @staticmethod
    def _insert(conn: sqlite3.Connection, table: str, values: Dict[str, Any]) -> int:
        columns = list(values)
        sql = "INSERT INTO {} ({}) VALUES ({})".format(
            table, ", ".join(columns), ", ".join("?" for _ in columns)
        )
        cursor = conn.execute(sql, [_db_value(values[c]) for c in columns])
        return int(cursor.lastrowid)

    def _update(self, table: str, owner_id: str, entity_id: int, values: Dict[str, Any]) -> None:
        if not values:
            return
        assignments = ", ".join(f"{column} = ?" for column in values)
        params = [_db_value(v) for v in values.values()] + [entity_id, owner_id]
        with self.atomic() as conn:
            conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ? AND owner_id = ?", params)

    # Accounts --------------------------------------------------------------

    def list_accounts(self, owner_id: str) -> List[Account]:
        rows = self._query("SELECT * FROM accounts WHERE owner_id = ? ORDER BY name, id", (owner_id,))
        return [Account.from_row(r) for r in rows]

    def get_account(self, owner_id: str, account_id: int) -> Account:
        return Account.from_row(self._get('accounts', 'Account', owner_id, account_id))

    def create_account(
        self,
        owner_id: str,
        name: str,
        account_type: AccountType,
        notes: Optional[str] = None,
    ) -> Account:
        with self.atomic() as conn:
            account_id = self._insert(conn, 'accounts', {
                'owner_id': owner_id,
                'name': name,
                'type': AccountType(account_type),
                'notes': notes,
                'created_at': _now(),
            })
        logger.info(f"Added account {name!r} (ID: {account_id}) for owner {owner_id}")
        return self.get_account(owner_id, account_id)

    def update_account(
        self,
        owner_id: str,
        account_id: int,
        name: str,
        account_type: AccountType,
        notes: Optional[str] = None,
    ) -> Account:
        self.get_account(owner_id, account_id)
        self._update('accounts', owner_id, account_id, {
            'name': name,
            'type': AccountType(account_type),
            'notes': notes,
        })
        return self.get_account(owner_id, account_id)

    def count_account_references(self, owner_id: str, account_id: int) -> Tuple[int, int]:
        """Return (transaction_count, definition_count) referencing an account."""
        counts = []
        for table in ('transactions', 'budget_definitions'):
            row = self._query_one(
                f"SELECT COUNT(*) FROM {table} WHERE owner_id = ? "
                "AND (from_account_id = ? OR to_account_id = ?)",
                (owner_id, account_id, account_id),
            )
            counts.append(int(row[0]))
        return counts[0], counts[1]

    def delete_account(self, owner_id: str, account_id: int) -> None:
        with self.atomic() as conn:
            self.get_account(owner_id, account_id)
            transaction_count, definition_count = self.count_account_references(owner_id, account_id)
            if transaction_count:
                logger.warning(f"Cannot delete account {account_id} - used by {transaction_count} transaction(s)")
                raise ConflictError(
                    "Cannot delete account with existing transactions",
                    transaction_count=transaction_count,
                )
            if definition_count:
                logger.warning(f"Cannot delete account {account_id} - used by {definition_count} definition(s)")
                raise ConflictError(
                    "Cannot delete account referenced by budget definitions",
                    definition_count=definition_count,
                )
            conn.execute("DELETE FROM accounts WHERE id = ? AND owner_id = ?", (account_id, owner_id))
        logger.info(f"Deleted account {account_id} for owner {owner_id}")

    # Categories ------------------------------------------------------------

    def list_categories(self, owner_id: str) -> List[Category]:
        rows = self._query("SELECT * FROM categories WHERE owner_id = ? ORDER BY name, id", (owner_id,))
        return [Category.from_row(r) for r in rows]

    def get_category(self, owner_id: str, category_id: int) -> Category:
        return Category.from_row(self._get('categories', 'Category', owner_id, category_id))

    def find_category_by_name(self, owner_id: str, name: str) -> Optional[Category]:
        row = self._query_one(
            "SELECT * FROM categories WHERE owner_id = ? AND name = ?",
            (owner_id, name),
        )
        return Category.from_row(row) if row is not None else None

    def categories_by_id(self, owner_id: str, category_ids: Iterable[int]) -> Dict[int, Category]:
        """Fetch several categories in one query, keyed by id."""
        ids = sorted({int(c) for c in category_ids if c is not None})
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        rows = self._query(
            f"SELECT * FROM categories WHERE owner_id = ? AND id IN ({placeholders})",
            [owner_id, *ids],
        )
        return {int(r['id']): Category.from_row(r) for r in rows}

    def create_category(self, owner_id: str, name: str) -> Category:
        with self.atomic() as conn:
            if self.find_category_by_name(owner_id, name) is not None:
                raise ConflictError("A category with this name already exists", name=name)
            category_id = self._insert(conn, 'categories', {
                'owner_id': owner_id,
                'name': name,
                'created_at': _now(),
            })
        logger.info(f"Added category {name!r} (ID: {category_id}) for owner {owner_id}")
        return self.get_category(owner_id, category_id)

    def update_category(self, owner_id: str, category_id: int, name: str) -> Category:
        with self.atomic():
            self.get_category(owner_id, category_id)
            existing = self.find_category_by_name(owner_id, name)
            if existing is not None and existing.id != category_id:
                raise ConflictError("A category with this name already exists", name=name)
            self._update('categories', owner_id, category_id, {'name': name})
        return self.get_category(owner_id, category_id)

    def count_category_references(self, owner_id: str, category_id: int) -> Tuple[int, int]:
        """Return (transaction_count, definition_count) referencing a category."""
        counts = []
        for table in ('transactions', 'budget_definitions'):
            row = self._query_one(
                f"SELECT COUNT(*) FROM {table} WHERE owner_id = ? "
                "AND (category_id = ? OR to_category_id = ?)",
                (owner_id, category_id, category_id),
            )
            counts.append(int(row[0]))
        return counts[0], counts[1]

    def delete_category(self, owner_id: str, category_id: int) -> None:
        with self.atomic() as conn:
            self.get_category(owner_id, category_id)
            transaction_count, definition_count = self.count_category_references(owner_id, category_id)
            if transaction_count:
                logger.warning(f"Cannot delete category {category_id} - used by {transaction_count} transaction(s)")
                raise ConflictError(
                    "Cannot delete category with existing transactions",
                    transaction_count=transaction_count,
                )
            if definition_count:
                logger.warning(f"Cannot delete category {category_id} - used by {definition_count} definition(s)")
                raise ConflictError(
                    "Cannot delete category referenced by budget definitions",
                    definition_count=definition_count,
                )
            conn.execute("DELETE FROM categories WHERE id = ? AND owner_id = ?", (category_id, owner_id))
        logger.info(f"Deleted category {category_id} for owner {owner_id}")

    def category_usage(self, owner_id: str) -> Dict[int, Dict[str, int]]:
        """Count transactions and definitions referencing each category, on either side."""
        rows = self._query(
            """
            SELECT c.id,
                   (SELECT COUNT(*) FROM transactions t
                    WHERE t.category_id = c.id OR t.to_category_id = c.id) AS transaction_count,
                   (SELECT COUNT(*) FROM budget_definitions d
                    WHERE d.category_id = c.id OR d.to_category_id = c.id) AS definition_count
            FROM categories c
            WHERE c.owner_id = ?
            """,
            (owner_id,),
        )
        return {
            int(r['id']): {
                'transaction_count': int(r['transaction_count']),
                'definition_count': int(r['definition_count']),
            }
            for r in rows
        }

    # Budget templates ------------------------------------------------------

    def list_templates(self, owner_id: str) -> List[BudgetTemplate]:
        rows = self._query("SELECT * FROM budget_templates WHERE owner_id = ? ORDER BY name, id", (owner_id,))
        return [BudgetTemplate.from_row(r) for r in rows]

    def get_template(self, owner_id: str, template_id: int) -> BudgetTemplate:
        return BudgetTemplate.from_row(self._get('budget_templates', 'Budget template', owner_id, template_id))

    def create_template(self, owner_id: str, name: str) -> BudgetTemplate:
        stamp = _now()
        with self.atomic() as conn:
            template_id = self._insert(conn, 'budget_templates', {
                'owner_id': owner_id,
                'name': name,
                'created_at': stamp,
                'modified_at': stamp,
            })
        logger.info(f"Added budget template {name!r} (ID: {template_id}) for owner {owner_id}")
        return self.get_template(owner_id, template_id)

    def rename_template(self, owner_id: str, template_id: int, name: str) -> BudgetTemplate:
        self.get_template(owner_id, template_id)
        self._update('budget_templates', owner_id, template_id, {'name': name, 'modified_at': _now()})
        return self.get_template(owner_id, template_id)

    def delete_template(self, owner_id: str, template_id: int) -> None:
        with self.atomic() as conn:
            self.get_template(owner_id, template_id)
            conn.execute(
                "UPDATE months SET budget_template_id = NULL WHERE budget_template_id = ? AND owner_id = ?",
                (template_id, owner_id),
            )
            conn.execute(
                "DELETE FROM budget_definitions WHERE template_id = ? AND owner_id = ?",
                (template_id, owner_id),
            )
            conn.execute("DELETE FROM budget_templates WHERE id = ? AND owner_id = ?", (template_id, owner_id))
        logger.info(f"Deleted budget template {template_id} for owner {owner_id}")

    def template_usage(self, owner_id: str) -> Dict[int, Dict[str, int]]:
        rows = self._query(
            """
            SELECT b.id,
                   (SELECT COUNT(*) FROM budget_definitions d WHERE d.template_id = b.id) AS definition_count,
                   (SELECT COUNT(*) FROM months m WHERE m.budget_template_id = b.id) AS months_used_count
            FROM budget_templates b
            WHERE b.owner_id = ?
            """,
            (owner_id,),
        )
        return {
            int(r['id']): {
                'definition_count': int(r['definition_count']),
                'months_used_count': int(r['months_used_count']),
            }
            for r in rows
        }

    def _touch_template(self, conn: sqlite3.Connection, owner_id: str, template_id: int) -> None:
        conn.execute(
            "UPDATE budget_templates SET modified_at = ? WHERE id = ? AND owner_id = ?",
            (_now(), template_id, owner_id),
        )

    # Budget definitions ----------------------------------------------------

    def list_definitions(self, owner_id: str, template_id: int) -> List[BudgetTransactionDefinition]:
        rows = self._query(
            "SELECT * FROM budget_definitions WHERE owner_id = ? AND template_id = ? ORDER BY type, id",
            (owner_id, template_id),
        )
        return [BudgetTransactionDefinition.from_row(r) for r in rows]

    def get_definition(self, owner_id: str, template_id: int, definition_id: int) -> BudgetTransactionDefinition:
        row = self._query_one(
            "SELECT * FROM budget_definitions WHERE id = ? AND template_id = ? AND owner_id = ?",
            (definition_id, template_id, owner_id),
        )
        if row is None:
            logger.warning(f"Budget definition {definition_id} not found in template {template_id}")
            raise NotFoundError('Budget definition', definition_id)
        return BudgetTransactionDefinition.from_row(row)

    def create_definitions(
        self,
        owner_id: str,
        template_id: int,
        entries: Sequence[Dict[str, Any]],
    ) -> List[BudgetTransactionDefinition]:
        """Insert definitions for one template as a single batch."""
        created_ids: List[int] = []
        with self.atomic() as conn:
            self.get_template(owner_id, template_id)
            stamp = _now()
            for entry in entries:
                values = {c: entry.get(c) for c in _DEFINITION_COLUMNS}
                values.update(owner_id=owner_id, template_id=template_id, created_at=stamp)
                created_ids.append(self._insert(conn, 'budget_definitions', values))
            self._touch_template(conn, owner_id, template_id)
        logger.info(f"Added {len(created_ids)} definition(s) to budget template {template_id}")
        return [self.get_definition(owner_id, template_id, d) for d in created_ids]

    def create_definition(
        self,
        owner_id: str,
        template_id: int,
        entry: Dict[str, Any],
    ) -> BudgetTransactionDefinition:
        return self.create_definitions(owner_id, template_id, [entry])[0]

    def update_definition(
        self,
        owner_id: str,
        template_id: int,
        definition_id: int,
        entry: Dict[str, Any],
    ) -> BudgetTransactionDefinition:
        with self.atomic() as conn:
            self.get_definition(owner_id, template_id, definition_id)
            self._update('budget_definitions', owner_id, definition_id, {c: entry.get(c) for c in _DEFINITION_COLUMNS})
            self._touch_template(conn, owner_id, template_id)
        return self.get_definition(owner_id, template_id, definition_id)

    def delete_definition(self, owner_id: str, template_id: int, definition_id: int) -> None:
        with self.atomic() as conn:
            self.get_definition(owner_id, template_id, definition_id)
            conn.execute(
                "DELETE FROM budget_definitions WHERE id = ? AND owner_id = ?",
                (definition_id, owner_id),
            )
            self._touch_template(conn, owner_id, template_id)
        logger.info(f"Deleted budget definition {definition_id} from template {template_id}")

    # Months ----------------------------------------------------------------

    def list_months(self, owner_id: str) -> List[Month]:
        rows = self._query(
            "SELECT * FROM months WHERE owner_id = ? ORDER BY year DESC, month DESC",
            (owner_id,),
        )
        return [Month.from_row(r) for r in rows]

    def get_month(self, owner_id: str, month_id: int) -> Month:
        return Month.from_row(self._get('months', 'Month', owner_id, month_id))

    def find_month(self, owner_id: str, month: int, year: int) -> Optional[Month]:
        row = self._query_one(
            "SELECT * FROM months WHERE owner_id = ? AND month = ? AND year = ?",
            (owner_id, month, year),
        )
        return Month.from_row(row) if row is not None else None

    def create_month(
        self,
        owner_id: str,
        month: int,
        year: int,
        template_id: Optional[int] = None,
    ) -> Month:
        with self.atomic() as conn:
            if self.find_month(owner_id, month, year) is not None:
                raise ConflictError("A month with this month/year already exists", month=month, year=year)
            month_id = self._insert(conn, 'months', {
                'owner_id': owner_id,
                'month': month,
                'year': year,
                'budget_template_id': template_id,
                'created_at': _now(),
            })
        logger.info(f"Added month {year}-{month:02d} (ID: {month_id}) for owner {owner_id}")
        return self.get_month(owner_id, month_id)

    def update_month(self, owner_id: str, month_id: int, **values: Any) -> Month:
        """Update any of ``month``, ``year`` and ``budget_template_id``."""
        allowed = {k: v for k, v in values.items() if k in ('month', 'year', 'budget_template_id')}
        with self.atomic():
            current = self.get_month(owner_id, month_id)
            month = allowed.get('month', current.month)
            year = allowed.get('year', current.year)
            clash = self.find_month(owner_id, month, year)
            if clash is not None and clash.id != month_id:
                raise ConflictError("A month with this month/year already exists", month=month, year=year)
            self._update('months', owner_id, month_id, allowed)
        return self.get_month(owner_id, month_id)

    def delete_month(self, owner_id: str, month_id: int) -> None:
        with self.atomic() as conn:
            self.get_month(owner_id, month_id)
            deleted = conn.execute(
                "DELETE FROM transactions WHERE month_id = ? AND owner_id = ?",
                (month_id, owner_id),
            ).rowcount
            conn.execute("DELETE FROM months WHERE id = ? AND owner_id = ?", (month_id, owner_id))
        logger.info(f"Deleted month {month_id} and {deleted} transaction(s) for owner {owner_id}")

    # Transactions ----------------------------------------------------------

    def get_transaction(self, owner_id: str, transaction_id: int) -> Transaction:
        return Transaction.from_row(self._get('transactions', 'Transaction', owner_id, transaction_id))

    def list_transactions(
        self,
        owner_id: str,
        month_id: Optional[int] = None,
        category_id: Optional[int] = None,
        account_id: Optional[int] = None,
        txn_type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        oldest_first: bool = False,
    ) -> List[Transaction]:
        where: List[str] = ["owner_id = ?"]
        params: List[Any] = [owner_id]

        if month_id is not None:
            where.append("month_id = ?")
            params.append(month_id)
        if category_id is not None:
            where.append("category_id = ?")
            params.append(category_id)
        if account_id is not None:
            where.append("(from_account_id = ? OR to_account_id = ?)")
            params.extend([account_id, account_id])
        if txn_type is not None:
            where.append("type = ?")
            params.append(txn_type)
        if status is not None:
            where.append("status = ?")
            params.append(status)

        direction = "ASC" if oldest_first else "DESC"
        sql = f"SELECT * FROM transactions WHERE {' AND '.join(where)} ORDER BY date {direction}, id {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
            if offset:
                sql += " OFFSET ?"
                params.append(int(offset))
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(int(offset))
        return [Transaction.from_row(r) for r in self._query(sql, params)]

    def paid_transactions(self, owner_id: str, account_id: Optional[int] = None) -> List[Transaction]:
        """Settled transactions, optionally only those touching ``account_id``."""
        return self.list_transactions(owner_id, account_id=account_id, status=TransactionStatus.PAID)

    def search_transactions(self, owner_id: str, filters: SearchFilters) -> List[Transaction]:
        where: List[str] = ["owner_id = ?"]
        params: List[Any] = [owner_id]

        if filters.query:
            where.append("description LIKE ? ESCAPE '\\'")
            escaped = filters.query.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
            params.append(f"%{escaped}%")
        if filters.category_id is not None:
            where.append("category_id = ?")
            params.append(filters.category_id)
        if filters.type is not None:
            where.append("type = ?")
            params.append(filters.type)
        if filters.status is not None:
            where.append("status = ?")
            params.append(filters.status)
        if filters.month_id is not None:
            where.append("month_id = ?")
            params.append(filters.month_id)
        if filters.account_id is not None:
            where.append("(from_account_id = ? OR to_account_id = ?)")
            params.extend([filters.account_id, filters.account_id])
        if filters.date_from is not None:
            where.append("date >= ?")
            params.append(filters.date_from)
        if filters.date_to is not None:
            where.append("date <= ?")
            params.append(filters.date_to)
        if filters.amount_min is not None:
            where.append("amount >= ?")
            params.append(filters.amount_min)
        if filters.amount_max is not None:
            where.append("amount <= ?")
            params.append(filters.amount_max)

        sql = f"SELECT * FROM transactions WHERE {' AND '.join(where)} ORDER BY date DESC, id DESC LIMIT ?"
        params.append(filters.limit)
        return [Transaction.from_row(r) for r in self._query(sql, params)]

    def create_transactions(self, owner_id: str, drafts: Iterable[Transaction]) -> List[Transaction]:
        """Insert a batch of transactions; either every row persists or none does."""
        created_ids: List[int] = []
        with self.atomic() as conn:
            stamp = _now()
            for draft in drafts:
                values = {c: getattr(draft, c) for c in _TRANSACTION_COLUMNS}
                values.update(owner_id=owner_id, created_at=stamp)
                created_ids.append(self._insert(conn, 'transactions', values))
        if created_ids:
            logger.info(f"Added {len(created_ids)} transaction(s) for owner {owner_id}")
        return [self.get_transaction(owner_id, t) for t in created_ids]

    def create_transaction(self, owner_id: str, values: Dict[str, Any]) -> Transaction:
        with self.atomic() as conn:
            row = {c: values.get(c) for c in _TRANSACTION_COLUMNS}
            row.update(owner_id=owner_id, created_at=_now())
            transaction_id = self._insert(conn, 'transactions', row)
        logger.info(f"Added transaction {transaction_id} for owner {owner_id}")
        return self.get_transaction(owner_id, transaction_id)

    def update_transaction(self, owner_id: str, transaction_id: int, values: Dict[str, Any]) -> Transaction:
        self.get_transaction(owner_id, transaction_id)
        self._update('transactions', owner_id, transaction_id, {
            c: values[c] for c in _TRANSACTION_COLUMNS if c in values
        })
        return self.get_transaction(owner_id, transaction_id)

    def update_transaction_status(
        self,
        owner_id: str,
        transaction_id: int,
        status: TransactionStatus,
    ) -> Transaction:
        self.get_transaction(owner_id, transaction_id)
        self._update('transactions', owner_id, transaction_id, {'status': TransactionStatus(status)})
        return self.get_transaction(owner_id, transaction_id)

    def delete_transaction(self, owner_id: str, transaction_id: int) -> None:
        with self.atomic() as conn:
            self.get_transaction(owner_id, transaction_id)
            conn.execute("DELETE FROM transactions WHERE id = ? AND owner_id = ?", (transaction_id, owner_id))
        logger.info(f"Deleted transaction {transaction_id} for owner {owner_id}")

    def transactions_frame(self, owner_id: str, month_id: Optional[int] = None) -> pd.DataFrame:
        """Transactions joined with category and account names, for reporting."""
        sql = """
        SELECT t.id, t.date AS 'Date', t.type AS 'Type', t.status AS 'Status',
               t.amount AS 'Amount', t.description AS 'Description',
               c.name AS 'Category', tc.name AS 'To Category',
               fa.name AS 'From Account', ta.name AS 'To Account',
               m.year AS 'Year', m.month AS 'Month'
        FROM transactions t
        LEFT JOIN categories c ON c.id = t.category_id
        LEFT JOIN categories tc ON tc.id = t.to_category_id
        LEFT JOIN accounts fa ON fa.id = t.from_account_id
        LEFT JOIN accounts ta ON ta.id = t.to_account_id
        LEFT JOIN months m ON m.id = t.month_id
        WHERE t.owner_id = ?
        """
        params: List[Any] = [owner_id]
        if month_id is not None:
            sql += " AND t.month_id = ?"
            params.append(month_id)
        sql += " ORDER BY t.date ASC, t.id ASC"
        try:
            df = pd.read_sql_query(sql, self._connection(), params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error(f"Could not load transactions frame: {e}")
            raise StoreError(f"Database query failed: {e}") from e
        if not df.empty:
            df['Date'] = pd.to_datetime(df['Date'])
        return df
