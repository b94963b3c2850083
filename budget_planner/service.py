"""Owner-scoped operations offered to the transport layer.

``LedgerService`` validates raw payloads, resolves every referenced id for the
calling owner, then hands off to the store and to the pure balance, expansion
and report modules. It returns records or report objects; each has a
``to_dict`` for response shaping.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import reports
from .balances import AccountBalance, CategoryNames, compute_account_balance, lookup_from_mapping
from .db import LedgerStore
from .errors import ValidationError
from .expander import expand_definitions
from .models import (
    Account,
    BudgetTemplate,
    BudgetTransactionDefinition,
    Category,
    Month,
    Transaction,
    next_status,
)
from .validation import (
    merge_patch,
    parse_account_request,
    parse_definition_request,
    parse_id,
    parse_month_period,
    parse_name,
    parse_optional_id,
    parse_search_filters,
    parse_status,
    parse_transaction_request,
    parse_transaction_type,
)

logger = logging.getLogger(__name__)

_TRANSACTION_FIELDS = (
    'type', 'date', 'amount', 'description', 'status', 'category_id',
    'to_category_id', 'month_id', 'from_account_id', 'to_account_id',
)
_DEFINITION_FIELDS = (
    'type', 'amount', 'description', 'category_id', 'to_category_id',
    'from_account_id', 'to_account_id',
)


class LedgerService:
    """Facade over one ``LedgerStore`` for a single owner."""

    def __init__(self, store: LedgerStore, owner_id: str) -> None:
        if not owner_id:
            raise ValidationError("owner_id is required", 'owner_id')
        self.store = store
        self.owner_id = owner_id

    # Reference checks -------------------------------------------------------

    def _category_names(self, transactions: Iterable[Transaction]) -> CategoryNames:
        ids = set()
        for txn in transactions:
            ids.add(txn.category_id)
            if txn.to_category_id:
                ids.add(txn.to_category_id)
        return CategoryNames(lookup_from_mapping(self.store.categories_by_id(self.owner_id, ids)))

    def _check_entry_references(self, columns: Mapping[str, Any]) -> None:
        for field in ('category_id', 'to_category_id'):
            if columns.get(field) is not None:
                self.store.get_category(self.owner_id, columns[field])
        for field in ('from_account_id', 'to_account_id'):
            if columns.get(field) is not None:
                self.store.get_account(self.owner_id, columns[field])

    # Accounts --------------------------------------------------------------

    def list_accounts(self) -> List[reports.AccountSummary]:
        return self.account_summary()

    def get_account_detail(self, account_id: Any) -> Dict[str, Any]:
        """Account with its realized balance and every transaction touching it."""
        account = self.store.get_account(self.owner_id, parse_id(account_id, 'account_id'))
        totals = self.compute_account_balance(account.id)
        transactions = self.store.list_transactions(self.owner_id, account_id=account.id)
        values = account.to_dict()
        values.update(totals.to_dict())
        values['transactions'] = [t.to_dict() for t in transactions]
        return values

    def create_account(self, payload: Mapping[str, Any]) -> Account:
        request = parse_account_request(payload)
        return self.store.create_account(self.owner_id, request.name, request.type, request.notes)

    def update_account(self, account_id: Any, payload: Mapping[str, Any]) -> Account:
        account = self.store.get_account(self.owner_id, parse_id(account_id, 'account_id'))
        merged = merge_patch(account.to_dict(), payload, ('name', 'type', 'notes'))
        request = parse_account_request(merged)
        return self.store.update_account(self.owner_id, account.id, request.name, request.type, request.notes)

    def delete_account(self, account_id: Any) -> None:
        self.store.delete_account(self.owner_id, parse_id(account_id, 'account_id'))

    # Categories ------------------------------------------------------------

    def list_categories(self) -> List[Dict[str, Any]]:
        usage = self.store.category_usage(self.owner_id)
        result = []
        for category in self.store.list_categories(self.owner_id):
            values = category.to_dict()
            values.update(usage.get(category.id, {'transaction_count': 0, 'definition_count': 0}))
            result.append(values)
        return result

    def create_category(self, payload: Mapping[str, Any]) -> Category:
        return self.store.create_category(self.owner_id, parse_name(payload.get('name')))

    def update_category(self, category_id: Any, payload: Mapping[str, Any]) -> Category:
        return self.store.update_category(
            self.owner_id,
            parse_id(category_id, 'category_id'),
            parse_name(payload.get('name')),
        )

    def delete_category(self, category_id: Any) -> None:
        self.store.delete_category(self.owner_id, parse_id(category_id, 'category_id'))

    # Budget templates ------------------------------------------------------

    def list_templates(self) -> List[Dict[str, Any]]:
        usage = self.store.template_usage(self.owner_id)
        result = []
        for template in self.store.list_templates(self.owner_id):
            values = template.to_dict()
            values.update(usage.get(template.id, {'definition_count': 0, 'months_used_count': 0}))
            result.append(values)
        return result

    def get_template(self, template_id: Any) -> Dict[str, Any]:
        template = self.store.get_template(self.owner_id, parse_id(template_id, 'template_id'))
        values = template.to_dict()
        values['definitions'] = [d.to_dict() for d in self.store.list_definitions(self.owner_id, template.id)]
        values['months'] = [
            m.to_dict() for m in self.store.list_months(self.owner_id)
            if m.budget_template_id == template.id
        ]
        return values

    def create_template(self, payload: Mapping[str, Any]) -> BudgetTemplate:
        return self.store.create_template(self.owner_id, parse_name(payload.get('name')))

    def rename_template(self, template_id: Any, payload: Mapping[str, Any]) -> BudgetTemplate:
        return self.store.rename_template(
            self.owner_id,
            parse_id(template_id, 'template_id'),
            parse_name(payload.get('name')),
        )

    def delete_template(self, template_id: Any) -> None:
        self.store.delete_template(self.owner_id, parse_id(template_id, 'template_id'))

    def add_definition(self, template_id: Any, payload: Mapping[str, Any]) -> BudgetTransactionDefinition:
        template = self.store.get_template(self.owner_id, parse_id(template_id, 'template_id'))
        columns = parse_definition_request(payload).columns()
        self._check_entry_references(columns)
        return self.store.create_definition(self.owner_id, template.id, columns)

    def update_definition(
        self,
        template_id: Any,
        definition_id: Any,
        payload: Mapping[str, Any],
    ) -> BudgetTransactionDefinition:
        current = self.store.get_definition(
            self.owner_id,
            parse_id(template_id, 'template_id'),
            parse_id(definition_id, 'definition_id'),
        )
        merged = merge_patch(current.to_dict(), payload, _DEFINITION_FIELDS)
        columns = parse_definition_request(merged).columns()
        self._check_entry_references(columns)
        return self.store.update_definition(self.owner_id, current.template_id, current.id, columns)

    def delete_definition(self, template_id: Any, definition_id: Any) -> None:
        self.store.delete_definition(
            self.owner_id,
            parse_id(template_id, 'template_id'),
            parse_id(definition_id, 'definition_id'),
        )

    # Months ----------------------------------------------------------------

    def list_months(self) -> List[reports.MonthOverview]:
        months = self.store.list_months(self.owner_id)
        template_names = {t.id: t.name for t in self.store.list_templates(self.owner_id)}
        return reports.month_overview(months, self.store.list_transactions(self.owner_id), template_names)

    def get_month(self, month_id: Any) -> Dict[str, Any]:
        month = self.store.get_month(self.owner_id, parse_id(month_id, 'month_id'))
        values = month.to_dict()
        values['budget_template_name'] = (
            self.store.get_template(self.owner_id, month.budget_template_id).name
            if month.budget_template_id else None
        )
        values['transactions'] = [
            t.to_dict()
            for t in self.store.list_transactions(self.owner_id, month_id=month.id, oldest_first=True)
        ]
        return values

    def create_month(self, month: Any, year: Any, template_id: Any = None) -> Month:
        """Create a month, expanding ``template_id`` into it when given.

        The month row and its planned transactions are written as one unit.
        """
        month_num, year_num = parse_month_period(month, year)
        template_id = parse_optional_id(template_id, 'template_id')
        with self.store.atomic():
            if template_id is not None:
                self.store.get_template(self.owner_id, template_id)
            created = self.store.create_month(self.owner_id, month_num, year_num, template_id)
            if template_id is not None:
                self.expand_template_to_month(template_id, created.id)
        return self.store.get_month(self.owner_id, created.id)

    def update_month(self, month_id: Any, payload: Mapping[str, Any]) -> Month:
        current = self.store.get_month(self.owner_id, parse_id(month_id, 'month_id'))
        month_num, year_num = parse_month_period(
            payload.get('month', current.month),
            payload.get('year', current.year),
        )
        values: Dict[str, Any] = {'month': month_num, 'year': year_num}
        if 'budget_template_id' in payload:
            template_id = parse_optional_id(payload.get('budget_template_id'), 'budget_template_id')
            if template_id is not None:
                self.store.get_template(self.owner_id, template_id)
            values['budget_template_id'] = template_id
        return self.store.update_month(self.owner_id, current.id, **values)

    def delete_month(self, month_id: Any) -> None:
        self.store.delete_month(self.owner_id, parse_id(month_id, 'month_id'))

    def apply_template(self, month_id: Any, template_id: Any) -> Dict[str, Any]:
        """Apply a template to an existing month and return the refreshed month."""
        if template_id is None or template_id == '':
            raise ValidationError("budget_template_id is required", 'budget_template_id')
        self.expand_template_to_month(template_id, month_id)
        return self.get_month(month_id)

    def expand_template_to_month(self, template_id: Any, month_id: Any) -> List[Transaction]:
        """Materialize one PLANNED transaction per template definition.

        All rows are written in one batch. Existing transactions in the month
        are left alone, so applying the same template twice doubles its rows.
        """
        template_id = parse_id(template_id, 'template_id')
        month_id = parse_id(month_id, 'month_id')
        with self.store.atomic():
            month = self.store.get_month(self.owner_id, month_id)
            template = self.store.get_template(self.owner_id, template_id)
            definitions = self.store.list_definitions(self.owner_id, template.id)
            drafts = expand_definitions(definitions, month.id, month.month, month.year)
            created = self.store.create_transactions(self.owner_id, drafts)
            if month.budget_template_id != template.id:
                self.store.update_month(self.owner_id, month.id, budget_template_id=template.id)
        logger.info(
            f"Applied budget template {template.id} to {month.year}-{month.month:02d}: "
            f"{len(created)} planned transaction(s)"
        )
        return created

    # Transactions ----------------------------------------------------------

    def list_transactions(self, filters: Optional[Mapping[str, Any]] = None) -> List[Transaction]:
        filters = filters or {}
        txn_type = filters.get('type')
        status = filters.get('status')
        limit = filters.get('limit')
        offset = filters.get('offset')
        return self.store.list_transactions(
            self.owner_id,
            month_id=parse_optional_id(filters.get('month_id'), 'month_id'),
            category_id=parse_optional_id(filters.get('category_id'), 'category_id'),
            account_id=parse_optional_id(filters.get('account_id'), 'account_id'),
            txn_type=parse_transaction_type(txn_type) if txn_type else None,
            status=parse_status(status) if status else None,
            limit=parse_id(limit, 'limit') if limit not in (None, '') else None,
            offset=parse_id(offset, 'offset') if offset not in (None, '', 0, '0') else None,
        )

    def get_transaction(self, transaction_id: Any) -> Transaction:
        return self.store.get_transaction(self.owner_id, parse_id(transaction_id, 'transaction_id'))

    def create_transaction(self, payload: Mapping[str, Any]) -> Transaction:
        request = parse_transaction_request(payload)
        columns = request.columns()
        self.store.get_month(self.owner_id, request.month_id)
        self._check_entry_references(columns)
        return self.store.create_transaction(self.owner_id, columns)

    def update_transaction(self, transaction_id: Any, payload: Mapping[str, Any]) -> Transaction:
        """Apply a partial update; the merged row must still be a valid transaction."""
        current = self.get_transaction(transaction_id)
        merged = merge_patch(current.to_dict(), payload, _TRANSACTION_FIELDS)
        request = parse_transaction_request(merged)
        columns = request.columns()
        self.store.get_month(self.owner_id, request.month_id)
        self._check_entry_references(columns)
        return self.store.update_transaction(self.owner_id, current.id, columns)

    def update_transaction_status(self, transaction_id: Any, status: Any) -> Transaction:
        # Validate first so a bad status never reaches the store
        new_status = parse_status(status)
        return self.store.update_transaction_status(
            self.owner_id,
            parse_id(transaction_id, 'transaction_id'),
            new_status,
        )

    def cycle_transaction_status(self, transaction_id: Any) -> Transaction:
        current = self.get_transaction(transaction_id)
        return self.store.update_transaction_status(self.owner_id, current.id, next_status(current.status))

    def delete_transaction(self, transaction_id: Any) -> None:
        self.store.delete_transaction(self.owner_id, parse_id(transaction_id, 'transaction_id'))

    def search(self, filters: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        transactions = self.store.search_transactions(self.owner_id, parse_search_filters(filters))
        return {'count': len(transactions), 'transactions': transactions}

    # Reports ---------------------------------------------------------------

    def compute_account_balance(self, account_id: Any) -> AccountBalance:
        account = self.store.get_account(self.owner_id, parse_id(account_id, 'account_id'))
        settled = self.store.paid_transactions(self.owner_id, account_id=account.id)
        return compute_account_balance(account.id, settled, self._category_names(settled))

    def account_summary(self) -> List[reports.AccountSummary]:
        settled = self.store.paid_transactions(self.owner_id)
        return reports.account_summary(
            self.store.list_accounts(self.owner_id),
            settled,
            self._category_names(settled),
        )

    def monthly_summary(self, month_id: Any) -> reports.MonthlySummary:
        month = self.store.get_month(self.owner_id, parse_id(month_id, 'month_id'))
        transactions = self.store.list_transactions(self.owner_id, month_id=month.id)
        return reports.monthly_summary(month, transactions, self._category_names(transactions))

    def category_detail(self, account_id: Any, category_id: Any) -> reports.CategoryDetail:
        if account_id in (None, '') or category_id in (None, ''):
            raise ValidationError("account_id and category_id are required")
        account = self.store.get_account(self.owner_id, parse_id(account_id, 'account_id'))
        category = self.store.get_category(self.owner_id, parse_id(category_id, 'category_id'))
        settled = self.store.paid_transactions(self.owner_id, account_id=account.id)
        return reports.category_detail(account.id, category.id, settled)


def open_service(owner_id: str, path: Optional[str] = None) -> LedgerService:
    """Open a store at ``path`` (default from config) and wrap it for ``owner_id``.

    The caller owns the store's lifecycle: close it with ``service.store.close()``.
    """
    store = LedgerStore(path).open()
    try:
        return LedgerService(store, owner_id)
    except ValidationError:
        store.close()
        raise
