from datetime import date

import pytest

from budget_planner.errors import ValidationError
from budget_planner.models import STATUS_CYCLE, AccountType, TransactionStatus, next_status
from budget_planner.validation import (
    IncomeEntry,
    SpendingEntry,
    TransferEntry,
    merge_patch,
    parse_account_request,
    parse_amount,
    parse_entry,
    parse_month_period,
    parse_search_filters,
    parse_status,
    parse_transaction_request,
)


def _payload(**overrides):
    values = {
        'type': 'SPENDING',
        'amount': 42.5,
        'category_id': 3,
        'from_account_id': 1,
        'date': '2024-03-05',
        'month_id': 9,
    }
    values.update(overrides)
    return values


def test_each_type_parses_into_its_own_variant():
    assert isinstance(parse_entry(_payload()), SpendingEntry)
    income = parse_entry(_payload(type='INCOME', from_account_id=None, to_account_id=2))
    assert isinstance(income, IncomeEntry)
    transfer = parse_entry(_payload(type='TRANSFER', to_account_id=2))
    assert isinstance(transfer, TransferEntry)


@pytest.mark.parametrize("overrides, field", [
    ({'type': 'INCOME'}, 'from_account_id'),
    ({'type': 'INCOME', 'from_account_id': None}, 'to_account_id'),
    ({'to_account_id': 2}, 'to_account_id'),
    ({'from_account_id': None}, 'from_account_id'),
    ({'to_category_id': 4}, 'to_category_id'),
    ({'category_id': None}, 'category_id'),
    ({'type': 'REFUND'}, 'type'),
    ({'type': None}, 'type'),
])
def test_variant_field_rules(overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        parse_entry(_payload(**overrides))
    assert excinfo.value.field == field


def test_transfer_requires_two_different_accounts():
    with pytest.raises(ValidationError):
        parse_entry(_payload(type='TRANSFER'))
    with pytest.raises(ValidationError):
        parse_entry(_payload(type='TRANSFER', to_account_id=1))


@pytest.mark.parametrize("value", [0, -5, '', None, 'abc', True, float('nan')])
def test_amount_must_be_positive_number(value):
    with pytest.raises(ValidationError):
        parse_amount(value)


def test_amount_accepts_numeric_strings():
    assert parse_amount('19.99') == 19.99


def test_transfer_request_fills_destination_category():
    request = parse_transaction_request(_payload(type='TRANSFER', to_account_id=2))

    columns = request.columns()

    assert columns['to_category_id'] == 3
    assert columns['date'] == date(2024, 3, 5)
    assert columns['status'] == TransactionStatus.PLANNED


def test_transaction_request_requires_date_and_month():
    with pytest.raises(ValidationError):
        parse_transaction_request(_payload(date=None))
    with pytest.raises(ValidationError):
        parse_transaction_request(_payload(date='05/03/2024'))
    with pytest.raises(ValidationError):
        parse_transaction_request(_payload(month_id=None))


@pytest.mark.parametrize("value", ['paid', 'DONE', '', None, 1])
def test_unknown_status_is_rejected(value):
    with pytest.raises(ValidationError):
        parse_status(value)


def test_status_set_is_closed():
    assert {s.value for s in TransactionStatus} == {'PLANNED', 'PAID', 'PENDING', 'SKIPPED'}
    for status in TransactionStatus:
        assert parse_status(status.value) is status


def test_status_cycle_visits_every_status():
    seen = []
    status = TransactionStatus.PLANNED
    for _ in STATUS_CYCLE:
        seen.append(status)
        status = next_status(status)

    assert status == TransactionStatus.PLANNED
    assert set(seen) == set(TransactionStatus)


@pytest.mark.parametrize("month, year", [
    (0, 2024), (13, 2024), (1, 1899), (1, 10000), ('x', 2024), (None, 2024),
    (3.7, 2024), (3, 2024.9), (True, 2024), (3, float('nan')),
])
def test_month_period_bounds(month, year):
    with pytest.raises(ValidationError):
        parse_month_period(month, year)


def test_month_period_accepts_strings():
    assert parse_month_period('3', '2024') == (3, 2024)


def test_merge_patch_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        merge_patch({'amount': 1.0}, {'owner_id': 'someone-else'}, ('amount',))


def test_merge_patch_type_change_clears_account_fields():
    current = {'type': 'SPENDING', 'from_account_id': 1, 'to_account_id': None, 'to_category_id': None}

    merged = merge_patch(current, {'type': 'INCOME', 'to_account_id': 2}, ('type', 'to_account_id'))

    assert merged['from_account_id'] is None
    assert merged['to_account_id'] == 2


def test_account_request_normalizes_type():
    request = parse_account_request({'name': '  Visa ', 'type': 'Credit Card', 'notes': ''})

    assert request.name == 'Visa'
    assert request.type == AccountType.CREDIT_CARD
    assert request.notes is None


def test_account_request_rejects_unknown_type():
    with pytest.raises(ValidationError):
        parse_account_request({'name': 'Gold', 'type': 'bullion'})


def test_search_limit_is_capped():
    assert parse_search_filters({'limit': 5000}).limit == 100
    assert parse_search_filters({'limit': '20'}).limit == 20
    assert parse_search_filters().limit == 100


def test_search_rejects_inverted_date_range():
    with pytest.raises(ValidationError):
        parse_search_filters({'date_from': '2024-03-10', 'date_to': '2024-03-01'})


def test_month_period_accepts_whole_floats():
    assert parse_month_period(3.0, 2024.0) == (3, 2024)
