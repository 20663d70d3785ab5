from datetime import date

import pytest

from budget_tracker.models import ExpenseFormData, IncomeFormData
from budget_tracker.storage import MemoryStore
from budget_tracker.tracker import BudgetTracker

TODAY = date(2025, 2, 15)


def make_tracker(store=None, today=TODAY):
    return BudgetTracker(store or MemoryStore(), today=lambda: today).load()


def add_scenario_a(tracker):
    """January 2025: $50 food, $100 savings, $1000 salary."""
    tracker.submit_expense(ExpenseFormData(amount="50", category="Food", date="2025-01-05"))
    tracker.submit_expense(ExpenseFormData(amount="100", category="Savings", date="2025-01-10"))
    tracker.submit_income(IncomeFormData(amount="1000", source="Salary", date="2025-01-01"))
    return tracker


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tracker(store):
    return make_tracker(store)


@pytest.fixture
def scenario_a(tracker):
    return add_scenario_a(tracker)
