from datetime import date

from budget_planner.expander import expand_definitions, first_day_of_month
from budget_planner.models import BudgetTransactionDefinition, TransactionStatus, TransactionType

CHECKING, SAVINGS = 1, 2
SALARY, CAR, FUN = 10, 12, 13


def _definition(def_id, kind, amount, category_id, **extra):
    return BudgetTransactionDefinition(
        id=def_id,
        owner_id='u1',
        template_id=7,
        type=TransactionType(kind),
        amount=amount,
        category_id=category_id,
        **extra,
    )


def _template():
    return [
        _definition(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING, description='Paycheck'),
        _definition(2, 'TRANSFER', 500.0, CAR, from_account_id=CHECKING, to_account_id=SAVINGS),
    ]


def test_template_expands_to_planned_rows_on_first_of_month():
    drafts = expand_definitions(_template(), month_id=42, month=3, year=2024)

    assert len(drafts) == 2
    assert [d.amount for d in drafts] == [3000.0, 500.0]
    assert all(d.date == date(2024, 3, 1) for d in drafts)
    assert all(d.status == TransactionStatus.PLANNED for d in drafts)
    assert all(d.month_id == 42 and d.id is None for d in drafts)
    assert drafts[0].description == 'Paycheck'


def test_transfer_destination_category_defaults_to_source_category():
    drafts = expand_definitions(_template(), month_id=42, month=3, year=2024)

    income, transfer = drafts
    assert transfer.to_category_id == CAR
    assert transfer.from_account_id == CHECKING
    assert transfer.to_account_id == SAVINGS
    assert income.to_category_id is None


def test_explicit_transfer_destination_category_is_kept():
    definitions = [
        _definition(1, 'TRANSFER', 50.0, CAR, from_account_id=CHECKING, to_account_id=SAVINGS, to_category_id=FUN),
    ]

    (draft,) = expand_definitions(definitions, month_id=1, month=12, year=2023)

    assert draft.to_category_id == FUN
    assert draft.date == date(2023, 12, 1)


def test_empty_template_expands_to_nothing():
    assert expand_definitions([], month_id=1, month=1, year=2024) == []


def test_one_draft_per_definition():
    definitions = [
        _definition(i, 'SPENDING', float(i), FUN, from_account_id=CHECKING) for i in range(1, 8)
    ]

    drafts = expand_definitions(definitions, month_id=3, month=2, year=2024)

    assert len(drafts) == len(definitions)
    assert [d.amount for d in drafts] == [float(i) for i in range(1, 8)]


def test_first_day_of_month():
    assert first_day_of_month(2, 2024) == date(2024, 2, 1)
