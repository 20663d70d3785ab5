import json
from datetime import date

import pytest

from budget_tracker.archive import ArchiveManager, build_archive
from budget_tracker.derivations import filter_by_month
from budget_tracker.errors import ValidationError
from budget_tracker.models import Expense, ExpenseFormData, Income
from budget_tracker.storage import STORAGE_KEYS, MemoryStore


def january_records():
    expenses = [
        Expense(id=1, amount=50.0, category='Food', date='2025-01-05'),
        Expense(id=2, amount=100.0, category='Savings', date='2025-01-10'),
        Expense(id=3, amount=20.0, category='Gas', date='2025-02-02'),
    ]
    income = [Income(id=4, amount=1000.0, source='Salary', date='2025-01-01')]
    return expenses, income


def make_manager(store=None):
    manager = ArchiveManager(store or MemoryStore())
    manager.load()
    return manager


def test_scenario_d_archive_totals_and_live_records_removed():
    manager = make_manager()
    expenses, income = january_records()

    result = manager.archive_month('2025-01', expenses, income)

    assert result.archive.total_spent == 50.0
    assert result.archive.total_income == 1000.0
    assert result.archive.net_amount == 950.0
    assert filter_by_month(result.expenses, '2025-01') == []
    assert filter_by_month(result.income, '2025-01') == []
    assert [e.id for e in result.expenses] == [3]


def test_archiving_twice_keeps_one_identical_archive():
    store = MemoryStore()
    manager = make_manager(store)
    expenses, income = january_records()

    first = manager.archive_month('2025-01', expenses, income)
    written = store.get(STORAGE_KEYS['MONTHLY_ARCHIVES'])
    second = manager.archive_month('2025-01', first.expenses, first.income)

    assert second.archive == first.archive
    assert store.get(STORAGE_KEYS['MONTHLY_ARCHIVES']) == written
    assert [a.month for a in manager.archives].count('2025-01') == 1


def test_rearchiving_merges_late_records():
    manager = make_manager()
    expenses, income = january_records()
    first = manager.archive_month('2025-01', expenses, income)
    late = Expense(id=7, amount=5.0, category='Food', date='2025-01-30')

    second = manager.archive_month('2025-01', first.expenses + [late], first.income)

    assert {e.id for e in second.archive.expenses} == {1, 2, 7}
    assert second.archive.total_spent == 55.0
    assert len(manager.archives) == 1
    assert filter_by_month(second.expenses, '2025-01') == []


def test_partition_invariant_over_several_months():
    manager = make_manager()
    expenses, income = january_records()
    result = manager.archive_month('2025-01', expenses, income)
    result = manager.archive_month('2025-02', result.expenses, result.income)

    for month in manager.archived_months():
        assert filter_by_month(result.expenses, month) == []
        assert filter_by_month(result.income, month) == []
        assert [a.month for a in manager.archives].count(month) == 1
    assert [a.month for a in manager.archives] == ['2025-02', '2025-01']


def test_archive_writes_all_collections_together():
    store = MemoryStore()
    manager = make_manager(store)
    expenses, income = january_records()
    manager.archive_month('2025-01', expenses, income)

    assert [row['id'] for row in json.loads(store.get(STORAGE_KEYS['EXPENSES']))] == [3]
    assert json.loads(store.get(STORAGE_KEYS['INCOME'])) == []
    archives = json.loads(store.get(STORAGE_KEYS['MONTHLY_ARCHIVES']))
    assert archives[0]['month'] == '2025-01'
    assert archives[0]['totalSpent'] == 50.0


def test_archive_rejects_bad_month():
    manager = make_manager()
    with pytest.raises(ValidationError):
        manager.archive_month('January', [], [])


def test_month_data_reads_archive_for_past_months():
    manager = make_manager()
    expenses, income = january_records()
    result = manager.archive_month('2025-01', expenses, income)
    late = Expense(id=8, amount=12.0, category='Food', date='2025-01-31')

    data = manager.month_data('2025-01', result.expenses + [late], result.income, today=date(2025, 2, 10))

    assert data.archived
    assert {e.id for e in data.expenses} == {1, 2, 8}
    assert [i.id for i in data.income] == [4]


def test_month_data_for_current_month_uses_live_records():
    manager = make_manager()
    expenses, income = january_records()
    data = manager.month_data('2025-02', expenses, income, today=date(2025, 2, 10))
    assert not data.archived
    assert [e.id for e in data.expenses] == [3]


def test_previous_archive_finds_nearest_earlier_month():
    manager = make_manager()
    manager.archive_month('2024-11', [], [])
    manager.archive_month('2024-12', [], [])
    assert manager.previous_archive('2025-01').month == '2024-12'
    assert manager.previous_archive('2024-11') is None


def test_build_archive_excludes_savings_from_spending():
    expenses, income = january_records()
    archive = build_archive('2025-01', expenses[:2], income, created_at='2025-02-01T00:00:00')
    assert archive.total_spent == 50.0
    assert archive.created_at == '2025-02-01T00:00:00'


def test_tracker_archive_keeps_wallet_balance(scenario_a):
    assert scenario_a.wallet_balance() == 100.0
    archive = scenario_a.archive_month('2025-01')
    assert archive.total_spent == 50.0
    assert scenario_a.expenses == []
    assert scenario_a.income == []
    assert scenario_a.wallet_balance() == 100.0


def test_tracker_archived_month_still_reports_summary(scenario_a):
    scenario_a.archive_month('2025-01')
    summary = scenario_a.summary('2025-01')
    assert summary['archived']
    assert summary['total_spent'] == 50.0
    assert summary['month_savings'] == 100.0
    assert summary['projection']['projected_spending'] == 0.0


def test_late_expense_after_archive_can_be_archived(scenario_a):
    scenario_a.archive_month('2025-01')
    scenario_a.submit_expense(ExpenseFormData(amount="9.99", category="Food", date="2025-01-20"))
    archive = scenario_a.archive_month('2025-01')
    assert archive.total_spent == 59.99
    assert scenario_a.expenses == []


def test_current_month_cannot_be_archived():
    store = MemoryStore()
    manager = make_manager(store)
    expenses, income = january_records()
    with pytest.raises(ValidationError):
        manager.archive_month('2025-02', expenses, income, today=date(2025, 2, 15))
    assert manager.archives == []
    assert store.get(STORAGE_KEYS['MONTHLY_ARCHIVES']) is None


def test_tracker_refuses_to_archive_current_month(tracker):
    tracker.submit_expense(ExpenseFormData(amount="50", category="Food", date="2025-02-03"))
    with pytest.raises(ValidationError):
        tracker.archive_month('2025-02')
    assert tracker.summary('2025-02')['total_spent'] == 50.0
    assert tracker.monthly_archives == []
