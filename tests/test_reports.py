from datetime import date

from budget_planner.balances import lookup_from_mapping
from budget_planner.models import (
    Account,
    AccountType,
    Category,
    Month,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from budget_planner.reports import (
    DIRECTION_IN,
    DIRECTION_OUT,
    account_summary,
    category_detail,
    month_overview,
    monthly_summary,
)

CHECKING, SAVINGS = 1, 2
SALARY, RENT, CAR = 10, 11, 12


def _lookup():
    return lookup_from_mapping({
        SALARY: Category(id=SALARY, owner_id='u1', name='Salary'),
        RENT: Category(id=RENT, owner_id='u1', name='Rent'),
        CAR: Category(id=CAR, owner_id='u1', name='Car'),
    })


def _txn(txn_id, kind, amount, category_id, status='PAID', month_id=1, on=date(2024, 3, 5), **extra):
    return Transaction(
        id=txn_id,
        owner_id='u1',
        type=TransactionType(kind),
        date=on,
        amount=amount,
        status=TransactionStatus(status),
        category_id=category_id,
        month_id=month_id,
        **extra,
    )


def _march():
    return Month(id=1, owner_id='u1', month=3, year=2024, budget_template_id=None)


def test_monthly_summary_splits_paid_and_planned():
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'SPENDING', 1000.0, RENT, from_account_id=CHECKING),
        _txn(3, 'SPENDING', 300.0, RENT, status='PLANNED', from_account_id=CHECKING),
    ]

    summary = monthly_summary(_march(), transactions, _lookup())
    values = summary.to_dict()

    assert values['paid'] == {'income': 3000.0, 'spending': 1000.0, 'transfers': 0.0, 'net': 2000.0}
    assert values['planned'] == {'income': 0.0, 'spending': 300.0, 'transfers': 0.0, 'net': -300.0}
    assert values['all']['net'] == 1700.0
    assert values['total_transactions'] == 3


def test_monthly_summary_transfers_do_not_change_net():
    transactions = [
        _txn(1, 'INCOME', 100.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'TRANSFER', 40.0, CAR, from_account_id=CHECKING, to_account_id=SAVINGS),
        _txn(3, 'SPENDING', 10.0, RENT, status='PENDING', from_account_id=CHECKING),
    ]

    summary = monthly_summary(_march(), transactions, _lookup())

    assert summary.paid.transfers == 40.0
    assert summary.paid.net == 100.0
    # PENDING rows only show up in the overall totals
    assert summary.planned.spending == 0.0
    assert summary.all.spending == 10.0


def test_monthly_summary_ignores_other_months():
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'INCOME', 999.0, SALARY, month_id=2, to_account_id=CHECKING),
    ]

    summary = monthly_summary(_march(), transactions, _lookup())

    assert summary.paid.income == 3000.0
    assert summary.total_transactions == 1


def test_monthly_summary_category_breakdown_is_paid_only():
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'SPENDING', 1000.0, RENT, from_account_id=CHECKING),
        _txn(3, 'SPENDING', 250.0, RENT, from_account_id=CHECKING),
        _txn(4, 'SPENDING', 300.0, CAR, status='PLANNED', from_account_id=CHECKING),
    ]

    summary = monthly_summary(_march(), transactions, _lookup())

    assert [(c.name, c.income, c.spending) for c in summary.category_breakdown] == [
        ('Rent', 0.0, 1250.0),
        ('Salary', 3000.0, 0.0),
    ]


def test_empty_month_summary_is_all_zero():
    summary = monthly_summary(_march(), [], _lookup())

    assert summary.total_transactions == 0
    assert summary.paid.net == 0.0
    assert summary.category_breakdown == []


def test_account_summary_balances_each_account():
    accounts = [
        Account(id=CHECKING, owner_id='u1', name='Checking', type=AccountType.CHECKING),
        Account(id=SAVINGS, owner_id='u1', name='Savings', type=AccountType.SAVINGS),
        Account(id=3, owner_id='u1', name='Wallet', type=AccountType.CASH),
    ]
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'TRANSFER', 500.0, CAR, from_account_id=CHECKING, to_account_id=SAVINGS),
        _txn(3, 'SPENDING', 80.0, RENT, status='PLANNED', from_account_id=CHECKING),
    ]

    summaries = account_summary(accounts, transactions, _lookup())

    assert [(s.account.name, s.totals.balance) for s in summaries] == [
        ('Checking', 2500.0),
        ('Savings', 500.0),
        ('Wallet', 0.0),
    ]
    assert summaries[0].to_dict()['type'] == 'checking'


def test_category_detail_tags_direction_newest_first():
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, on=date(2024, 3, 1), to_account_id=CHECKING),
        _txn(2, 'TRANSFER', 200.0, SALARY, on=date(2024, 3, 10), from_account_id=CHECKING, to_account_id=SAVINGS),
        _txn(3, 'INCOME', 50.0, SALARY, status='PLANNED', on=date(2024, 3, 20), to_account_id=CHECKING),
        _txn(4, 'SPENDING', 40.0, RENT, on=date(2024, 3, 15), from_account_id=CHECKING),
    ]

    detail = category_detail(CHECKING, SALARY, transactions)

    assert [(d.transaction.id, d.direction) for d in detail.transactions] == [
        (2, DIRECTION_OUT),
        (1, DIRECTION_IN),
    ]
    assert detail.total_in == 3000.0
    assert detail.total_out == 200.0
    assert detail.to_dict()['balance'] == 2800.0


def test_category_detail_follows_transfer_destination_category():
    transactions = [
        _txn(1, 'TRANSFER', 500.0, RENT, from_account_id=CHECKING, to_account_id=SAVINGS, to_category_id=CAR),
    ]

    detail = category_detail(SAVINGS, CAR, transactions)

    assert [d.direction for d in detail.transactions] == [DIRECTION_IN]
    assert detail.total_in == 500.0


def test_month_overview_rows_newest_first():
    months = [
        _march(),
        Month(id=2, owner_id='u1', month=4, year=2024, budget_template_id=7),
    ]
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'SPENDING', 1000.0, RENT, from_account_id=CHECKING),
        _txn(3, 'SPENDING', 300.0, RENT, status='PLANNED', month_id=2, from_account_id=CHECKING),
    ]

    rows = month_overview(months, transactions, {7: 'Default'})

    assert [r.month.id for r in rows] == [2, 1]
    april, march = rows
    assert april.template_name == 'Default'
    assert april.transaction_count == 1
    assert april.planned_spending == 300.0
    assert march.net == 2000.0
    assert march.to_dict()['budget_template_name'] is None


def test_month_overview_without_transactions():
    rows = month_overview([_march()], [])

    assert rows[0].transaction_count == 0
    assert rows[0].income == 0.0


def test_category_breakdown_sorts_names_ignoring_case():
    lookup = lookup_from_mapping({
        SALARY: Category(id=SALARY, owner_id='u1', name='Salary'),
        RENT: Category(id=RENT, owner_id='u1', name='Rent'),
        CAR: Category(id=CAR, owner_id='u1', name='car'),
    })
    transactions = [
        _txn(1, 'INCOME', 3000.0, SALARY, to_account_id=CHECKING),
        _txn(2, 'SPENDING', 1000.0, RENT, from_account_id=CHECKING),
        _txn(3, 'SPENDING', 60.0, CAR, from_account_id=CHECKING),
    ]

    summary = monthly_summary(_march(), transactions, lookup)

    assert [c.name for c in summary.category_breakdown] == ['car', 'Rent', 'Salary']
