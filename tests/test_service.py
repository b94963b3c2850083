from datetime import date

import pytest

from budget_planner.db import LedgerStore
from budget_planner.errors import ConflictError, NotFoundError, ValidationError
from budget_planner.models import TransactionStatus, TransactionType
from budget_planner.service import LedgerService

OWNER = 'user-1'
OTHER = 'user-2'


@pytest.fixture
def store(tmp_path):
    ledger = LedgerStore(tmp_path / "budget.db").open()
    yield ledger
    ledger.close()


@pytest.fixture
def service(store):
    return LedgerService(store, OWNER)


def _ledger(service):
    """Checking and Savings accounts, three categories and March 2024."""
    checking = service.create_account({'name': 'Checking', 'type': 'checking'})
    savings = service.create_account({'name': 'Savings', 'type': 'savings'})
    salary = service.create_category({'name': 'Salary'})
    rent = service.create_category({'name': 'Rent'})
    car = service.create_category({'name': 'Car'})
    march = service.create_month(3, 2024)
    return {
        'checking': checking.id,
        'savings': savings.id,
        'salary': salary.id,
        'rent': rent.id,
        'car': car.id,
        'march': march.id,
    }


def _template(service, ids):
    template = service.create_template({'name': 'Default'})
    service.add_definition(template.id, {
        'type': 'INCOME', 'amount': 3000, 'category_id': ids['salary'], 'to_account_id': ids['checking'],
    })
    service.add_definition(template.id, {
        'type': 'TRANSFER', 'amount': 500, 'category_id': ids['car'],
        'from_account_id': ids['checking'], 'to_account_id': ids['savings'],
    })
    return template


def _paid(service, ids, kind, amount, category, **accounts):
    payload = {
        'type': kind,
        'amount': amount,
        'category_id': ids[category],
        'date': '2024-03-05',
        'month_id': ids['march'],
        'status': 'PAID',
    }
    payload.update({key: ids[value] for key, value in accounts.items()})
    return service.create_transaction(payload)


def test_owner_is_required(store):
    with pytest.raises(ValidationError):
        LedgerService(store, '')


def test_account_balance_from_paid_transactions(service):
    ids = _ledger(service)
    _paid(service, ids, 'INCOME', 3000, 'salary', to_account_id='checking')
    _paid(service, ids, 'SPENDING', 1000, 'rent', from_account_id='checking')

    balance = service.compute_account_balance(ids['checking'])

    assert balance.balance == 2000.0
    assert [(c.name, c.balance) for c in balance.categories] == [('Rent', -1000.0), ('Salary', 3000.0)]


def test_apply_template_creates_planned_transactions(service):
    ids = _ledger(service)
    template = _template(service, ids)

    month = service.apply_template(ids['march'], template.id)

    assert month['budget_template_id'] == template.id
    assert month['budget_template_name'] == 'Default'
    rows = month['transactions']
    assert sorted(r['amount'] for r in rows) == [500.0, 3000.0]
    assert all(r['date'] == '2024-03-01' and r['status'] == 'PLANNED' for r in rows)
    transfer = next(r for r in rows if r['type'] == 'TRANSFER')
    assert transfer['to_category_id'] == ids['car']


def test_applying_template_twice_appends_again(service):
    ids = _ledger(service)
    template = _template(service, ids)

    service.expand_template_to_month(template.id, ids['march'])
    service.expand_template_to_month(template.id, ids['march'])

    assert len(service.list_transactions({'month_id': ids['march']})) == 4


def test_planned_template_rows_do_not_move_balances(service):
    ids = _ledger(service)
    template = _template(service, ids)

    service.apply_template(ids['march'], template.id)

    assert service.compute_account_balance(ids['checking']).balance == 0.0


def test_create_month_with_template_expands_it(service):
    ids = _ledger(service)
    template = _template(service, ids)

    april = service.create_month(4, 2024, template_id=template.id)

    assert april.budget_template_id == template.id
    rows = service.list_transactions({'month_id': april.id})
    assert len(rows) == 2
    assert {r.date for r in rows} == {date(2024, 4, 1)}


def test_create_month_with_unknown_template_leaves_nothing_behind(service):
    with pytest.raises(NotFoundError):
        service.create_month(5, 2024, template_id=404)

    assert service.store.list_months(OWNER) == []


def test_duplicate_month_conflicts(service):
    service.create_month(3, 2024)

    with pytest.raises(ConflictError):
        service.create_month('3', '2024')


def test_category_delete_blocked_until_transaction_removed(service):
    ids = _ledger(service)
    txn = _paid(service, ids, 'SPENDING', 45, 'rent', from_account_id='checking')

    with pytest.raises(ConflictError) as excinfo:
        service.delete_category(ids['rent'])
    assert excinfo.value.details['transaction_count'] == 1

    service.delete_transaction(txn.id)
    service.delete_category(ids['rent'])
    assert 'Rent' not in [c['name'] for c in service.list_categories()]


def test_invalid_status_leaves_transaction_untouched(service):
    ids = _ledger(service)
    txn = _paid(service, ids, 'SPENDING', 45, 'rent', from_account_id='checking')

    with pytest.raises(ValidationError):
        service.update_transaction_status(txn.id, 'DONE')

    assert service.get_transaction(txn.id).status == TransactionStatus.PAID


def test_cycle_status_advances(service):
    ids = _ledger(service)
    txn = _paid(service, ids, 'SPENDING', 45, 'rent', from_account_id='checking')

    assert service.cycle_transaction_status(txn.id).status == TransactionStatus.PENDING
    assert service.cycle_transaction_status(txn.id).status == TransactionStatus.SKIPPED
    assert service.cycle_transaction_status(txn.id).status == TransactionStatus.PLANNED


def test_update_transaction_merges_and_revalidates(service):
    ids = _ledger(service)
    txn = _paid(service, ids, 'SPENDING', 45, 'rent', from_account_id='checking')

    updated = service.update_transaction(txn.id, {'amount': 60, 'description': 'March rent'})
    assert updated.amount == 60.0
    assert updated.from_account_id == ids['checking']

    switched = service.update_transaction(txn.id, {'type': 'INCOME', 'to_account_id': ids['savings']})
    assert switched.type == TransactionType.INCOME
    assert switched.from_account_id is None

    with pytest.raises(ValidationError):
        service.update_transaction(txn.id, {'amount': -1})


def test_references_are_resolved_for_the_owner(service, store):
    ids = _ledger(service)
    other = LedgerService(store, OTHER)
    other_month = other.create_month(3, 2024)

    with pytest.raises(NotFoundError):
        other.create_transaction({
            'type': 'SPENDING',
            'amount': 10,
            'category_id': ids['rent'],
            'from_account_id': ids['checking'],
            'date': '2024-03-02',
            'month_id': other_month.id,
        })
    with pytest.raises(NotFoundError):
        other.compute_account_balance(ids['checking'])
    with pytest.raises(NotFoundError):
        other.get_month(ids['march'])


def test_monthly_summary_paid_and_planned(service):
    ids = _ledger(service)
    _paid(service, ids, 'INCOME', 3000, 'salary', to_account_id='checking')
    _paid(service, ids, 'SPENDING', 1000, 'rent', from_account_id='checking')
    service.create_transaction({
        'type': 'SPENDING', 'amount': 300, 'category_id': ids['rent'], 'from_account_id': ids['checking'],
        'date': '2024-03-20', 'month_id': ids['march'],
    })

    summary = service.monthly_summary(ids['march'])

    assert (summary.paid.income, summary.paid.spending, summary.paid.net) == (3000.0, 1000.0, 2000.0)
    assert (summary.planned.income, summary.planned.spending, summary.planned.net) == (0.0, 300.0, -300.0)


def test_account_summary_and_detail(service):
    ids = _ledger(service)
    _paid(service, ids, 'INCOME', 3000, 'salary', to_account_id='checking')
    _paid(service, ids, 'TRANSFER', 500, 'car', from_account_id='checking', to_account_id='savings')

    summaries = {s.account.name: s.totals.balance for s in service.account_summary()}
    detail = service.get_account_detail(ids['savings'])
    cell = service.category_detail(ids['checking'], ids['car'])

    assert summaries == {'Checking': 2500.0, 'Savings': 500.0}
    assert detail['balance'] == 500.0
    assert len(detail['transactions']) == 1
    assert [t.direction for t in cell.transactions] == ['out']


def test_list_months_overview(service):
    ids = _ledger(service)
    _paid(service, ids, 'INCOME', 3000, 'salary', to_account_id='checking')
    service.create_month(1, 2024)

    rows = service.list_months()

    assert [(r.month.month, r.month.year) for r in rows] == [(3, 2024), (1, 2024)]
    assert rows[0].income == 3000.0
    assert rows[1].transaction_count == 0


def test_template_listing_counts_usage(service):
    ids = _ledger(service)
    template = _template(service, ids)
    service.apply_template(ids['march'], template.id)

    (listed,) = service.list_templates()
    detail = service.get_template(template.id)

    assert listed['definition_count'] == 2
    assert listed['months_used_count'] == 1
    assert [d['type'] for d in detail['definitions']] == ['INCOME', 'TRANSFER']


def test_update_and_delete_definition(service):
    ids = _ledger(service)
    template = _template(service, ids)
    income = service.get_template(template.id)['definitions'][0]

    updated = service.update_definition(template.id, income['id'], {'amount': 3200})
    assert updated.amount == 3200.0

    service.delete_definition(template.id, income['id'])
    assert len(service.get_template(template.id)['definitions']) == 1


def test_search_by_description(service):
    ids = _ledger(service)
    service.create_transaction({
        'type': 'SPENDING', 'amount': 12, 'category_id': ids['rent'], 'from_account_id': ids['checking'],
        'date': '2024-03-02', 'month_id': ids['march'], 'description': 'Coffee beans',
    })

    result = service.search({'query': 'coffee'})

    assert result['count'] == 1
    assert result['transactions'][0].description == 'Coffee beans'
