"""Request parsing for everything that reaches the ledger from outside.

Transactions and budget definitions share the same money-movement shape, so
both are parsed into one of three entry variants. Each variant owns its
required-field set:

* ``IncomeEntry`` - money arrives in ``to_account_id``.
* ``SpendingEntry`` - money leaves ``from_account_id``.
* ``TransferEntry`` - money moves between two accounts, optionally landing
  under a different category on the receiving side.

Fields that make no sense for a variant are rejected rather than dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional, Union

from .config import SEARCH_RESULT_LIMIT
from .errors import ValidationError
from .models import AccountType, TransactionStatus, TransactionType

MAX_NAME_LENGTH = 100
MIN_YEAR = 1900
MAX_YEAR = 9999

_ACCOUNT_FIELDS = ('from_account_id', 'to_account_id', 'to_category_id')


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


def _present(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key)
    return value is not None and value != ''


def parse_amount(value: Any, field: str = 'amount') -> float:
    if value is None or value == '':
        raise ValidationError(f"{field} is required", field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field)
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field) from None
    if amount != amount or amount in (float('inf'), float('-inf')):
        raise ValidationError(f"{field} must be a finite number", field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field)
    return amount


def parse_id(value: Any, field: str) -> int:
    if value is None or value == '':
        raise ValidationError(f"{field} is required", field)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id", field)
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id", field) from None
    if parsed <= 0 or (isinstance(value, float) and value != parsed):
        raise ValidationError(f"{field} must be a positive integer id", field)
    return parsed


def parse_optional_id(value: Any, field: str) -> Optional[int]:
    if value is None or value == '':
        return None
    return parse_id(value, field)


def parse_name(value: Any, field: str = 'name') -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field)
    name = value.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"{field} must be at most {MAX_NAME_LENGTH} characters", field)
    return name


def parse_description(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("description must be text", 'description')
    return value.strip() or None


def parse_date(value: Any, field: str = 'date') -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", field)


def parse_status(value: Any) -> TransactionStatus:
    """Accept exactly one of the known statuses."""
    try:
        return TransactionStatus(value)
    except ValueError:
        allowed = ', '.join(s.value for s in TransactionStatus)
        raise ValidationError(f"status must be one of: {allowed}", 'status') from None


def parse_transaction_type(value: Any) -> TransactionType:
    try:
        return TransactionType(value)
    except ValueError:
        allowed = ', '.join(t.value for t in TransactionType)
        raise ValidationError(f"type must be one of: {allowed}", 'type') from None


def parse_account_type(value: Any) -> AccountType:
    if isinstance(value, str):
        value = value.strip().lower().replace(' ', '-').replace('_', '-')
    try:
        return AccountType(value)
    except ValueError:
        allowed = ', '.join(t.value for t in AccountType)
        raise ValidationError(f"type must be one of: {allowed}", 'type') from None


def parse_month_period(month: Any, year: Any) -> tuple:
    """Validate a (month, year) pair and return it as integers."""
    if month is None or year is None:
        raise ValidationError("month and year are required")
    for value in (month, year):
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise ValidationError("month and year must be integers")
    try:
        month_num = int(month)
        year_num = int(year)
    except (TypeError, ValueError):
        raise ValidationError("month and year must be integers") from None
    if not 1 <= month_num <= 12:
        raise ValidationError("month must be between 1 and 12", 'month')
    if not MIN_YEAR <= year_num <= MAX_YEAR:
        raise ValidationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}", 'year')
    return month_num, year_num


# ---------------------------------------------------------------------------
# Entry variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IncomeEntry:
    type: ClassVar[TransactionType] = TransactionType.INCOME

    amount: float
    category_id: int
    to_account_id: int
    description: Optional[str] = None

    def columns(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'amount': self.amount,
            'description': self.description,
            'category_id': self.category_id,
            'to_category_id': None,
            'from_account_id': None,
            'to_account_id': self.to_account_id,
        }


@dataclass(frozen=True)
class SpendingEntry:
    type: ClassVar[TransactionType] = TransactionType.SPENDING

    amount: float
    category_id: int
    from_account_id: int
    description: Optional[str] = None

    def columns(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'amount': self.amount,
            'description': self.description,
            'category_id': self.category_id,
            'to_category_id': None,
            'from_account_id': self.from_account_id,
            'to_account_id': None,
        }


@dataclass(frozen=True)
class TransferEntry:
    type: ClassVar[TransactionType] = TransactionType.TRANSFER

    amount: float
    category_id: int
    from_account_id: int
    to_account_id: int
    to_category_id: Optional[int] = None
    description: Optional[str] = None

    @property
    def destination_category_id(self) -> int:
        return self.to_category_id or self.category_id

    def columns(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'amount': self.amount,
            'description': self.description,
            'category_id': self.category_id,
            'to_category_id': self.to_category_id,
            'from_account_id': self.from_account_id,
            'to_account_id': self.to_account_id,
        }


Entry = Union[IncomeEntry, SpendingEntry, TransferEntry]


def _reject(payload: Mapping[str, Any], kind: TransactionType, *names: str) -> None:
    for name in names:
        if _present(payload, name):
            raise ValidationError(f"{name} is not allowed for {kind.value}", name)


def _income(payload: Mapping[str, Any]) -> IncomeEntry:
    _reject(payload, TransactionType.INCOME, 'from_account_id', 'to_category_id')
    if not _present(payload, 'to_account_id'):
        raise ValidationError("to_account_id is required for INCOME", 'to_account_id')
    return IncomeEntry(
        amount=parse_amount(payload.get('amount')),
        category_id=parse_id(payload.get('category_id'), 'category_id'),
        to_account_id=parse_id(payload.get('to_account_id'), 'to_account_id'),
        description=parse_description(payload.get('description')),
    )


def _spending(payload: Mapping[str, Any]) -> SpendingEntry:
    _reject(payload, TransactionType.SPENDING, 'to_account_id', 'to_category_id')
    if not _present(payload, 'from_account_id'):
        raise ValidationError("from_account_id is required for SPENDING", 'from_account_id')
    return SpendingEntry(
        amount=parse_amount(payload.get('amount')),
        category_id=parse_id(payload.get('category_id'), 'category_id'),
        from_account_id=parse_id(payload.get('from_account_id'), 'from_account_id'),
        description=parse_description(payload.get('description')),
    )


def _transfer(payload: Mapping[str, Any]) -> TransferEntry:
    if not (_present(payload, 'from_account_id') and _present(payload, 'to_account_id')):
        raise ValidationError("from_account_id and to_account_id are required for TRANSFER")
    from_account = parse_id(payload.get('from_account_id'), 'from_account_id')
    to_account = parse_id(payload.get('to_account_id'), 'to_account_id')
    if from_account == to_account:
        raise ValidationError("TRANSFER needs two different accounts", 'to_account_id')
    return TransferEntry(
        amount=parse_amount(payload.get('amount')),
        category_id=parse_id(payload.get('category_id'), 'category_id'),
        from_account_id=from_account,
        to_account_id=to_account,
        to_category_id=parse_optional_id(payload.get('to_category_id'), 'to_category_id'),
        description=parse_description(payload.get('description')),
    )


_ENTRY_PARSERS: Dict[TransactionType, Callable[[Mapping[str, Any]], Entry]] = {
    TransactionType.INCOME: _income,
    TransactionType.SPENDING: _spending,
    TransactionType.TRANSFER: _transfer,
}


def parse_entry(payload: Mapping[str, Any]) -> Entry:
    """Parse the money-movement part of a transaction or definition payload."""
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be an object")
    if not _present(payload, 'type'):
        raise ValidationError("type is required", 'type')
    kind = parse_transaction_type(payload.get('type'))
    return _ENTRY_PARSERS[kind](payload)


@dataclass(frozen=True)
class TransactionRequest:
    entry: Entry
    date: date
    month_id: int
    status: TransactionStatus = TransactionStatus.PLANNED

    def columns(self) -> Dict[str, Any]:
        values = self.entry.columns()
        if self.entry.type == TransactionType.TRANSFER:
            values['to_category_id'] = self.entry.destination_category_id
        values.update(date=self.date, month_id=self.month_id, status=self.status)
        return values


@dataclass(frozen=True)
class DefinitionRequest:
    entry: Entry

    def columns(self) -> Dict[str, Any]:
        return self.entry.columns()


def parse_transaction_request(payload: Mapping[str, Any]) -> TransactionRequest:
    entry = parse_entry(payload)
    if not _present(payload, 'date'):
        raise ValidationError("date is required", 'date')
    status = payload.get('status')
    return TransactionRequest(
        entry=entry,
        date=parse_date(payload.get('date')),
        month_id=parse_id(payload.get('month_id'), 'month_id'),
        status=parse_status(status) if status is not None else TransactionStatus.PLANNED,
    )


def parse_definition_request(payload: Mapping[str, Any]) -> DefinitionRequest:
    return DefinitionRequest(entry=parse_entry(payload))


def merge_patch(current: Dict[str, Any], patch: Mapping[str, Any], allowed: tuple) -> Dict[str, Any]:
    """Overlay ``patch`` onto ``current`` for the keys in ``allowed``.

    Changing ``type`` clears account fields the new variant would reject, so
    a SPENDING row can be turned into INCOME by sending the new account alone.
    """
    unknown = sorted(set(patch) - set(allowed))
    if unknown:
        raise ValidationError(f"unknown field(s): {', '.join(unknown)}", unknown[0])
    merged = dict(current)
    if 'type' in patch and patch['type'] != current.get('type'):
        for name in _ACCOUNT_FIELDS:
            merged[name] = None
    merged.update(patch)
    return merged


# ---------------------------------------------------------------------------
# Accounts and search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountRequest:
    name: str
    type: AccountType
    notes: Optional[str] = None


def parse_account_request(payload: Mapping[str, Any]) -> AccountRequest:
    if not isinstance(payload, Mapping):
        raise ValidationError("request body must be an object")
    if not _present(payload, 'name') or not _present(payload, 'type'):
        raise ValidationError("name and type are required")
    notes = payload.get('notes')
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be text", 'notes')
    return AccountRequest(
        name=parse_name(payload.get('name')),
        type=parse_account_type(payload.get('type')),
        notes=(notes or '').strip() or None,
    )


@dataclass(frozen=True)
class SearchFilters:
    query: Optional[str] = None
    account_id: Optional[int] = None
    category_id: Optional[int] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    month_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    limit: int = SEARCH_RESULT_LIMIT


def _optional_bound(value: Any, field: str) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field) from None


def parse_search_filters(payload: Optional[Mapping[str, Any]] = None) -> SearchFilters:
    payload = payload or {}
    query = payload.get('query')
    limit = payload.get('limit')
    limit_value = SEARCH_RESULT_LIMIT
    if limit not in (None, ''):
        limit_value = min(parse_id(limit, 'limit'), SEARCH_RESULT_LIMIT)
    filters = SearchFilters(
        query=query.strip() if isinstance(query, str) and query.strip() else None,
        account_id=parse_optional_id(payload.get('account_id'), 'account_id'),
        category_id=parse_optional_id(payload.get('category_id'), 'category_id'),
        type=parse_transaction_type(payload['type']) if _present(payload, 'type') else None,
        status=parse_status(payload['status']) if _present(payload, 'status') else None,
        month_id=parse_optional_id(payload.get('month_id'), 'month_id'),
        date_from=parse_date(payload['date_from'], 'date_from') if _present(payload, 'date_from') else None,
        date_to=parse_date(payload['date_to'], 'date_to') if _present(payload, 'date_to') else None,
        amount_min=_optional_bound(payload.get('amount_min'), 'amount_min'),
        amount_max=_optional_bound(payload.get('amount_max'), 'amount_max'),
        limit=limit_value,
    )
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise ValidationError("date_from must not be after date_to", 'date_from')
    return filters
