"""Application facade used by the presentation layer.

``BudgetTracker`` holds the live expense and income collections, delegates
goal/wallet bookkeeping to :class:`~budget_tracker.ledger.GoalLedger` and
month archiving to :class:`~budget_tracker.archive.ArchiveManager`, and
derives everything else on demand.  All mutations run under one re-entrant
lock so a multi-threaded host (Streamlit serves sessions from worker threads)
applies them one at a time, in order.

Observers registered with :meth:`BudgetTracker.subscribe` are told which
collection changed after every successful mutation; there is no other
refresh mechanism.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union

from . import derivations as dv
from .archive import ArchiveManager, MonthData
from .ledger import GoalLedger, GoalListener
from .models import (
    Expense,
    ExpenseFormData,
    FinancialGoal,
    GoalFormData,
    IdGenerator,
    Income,
    IncomeFormData,
    MonthlyArchive,
    SavingsLedgerEntry,
)
from .storage import STORAGE_KEYS, KeyValueStore, open_store
from .validation import (
    parse_amount,
    parse_month,
    validate_expense_form,
    validate_goal_form,
    validate_income_form,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class BudgetTracker:
    """Expenses, income, goals, the goals wallet and monthly archives."""

    def __init__(self, store: Optional[KeyValueStore] = None, today: Optional[Callable[[], date]] = None):
        self.store = store if store is not None else open_store()
        self._today = today or date.today
        self._lock = threading.RLock()
        self._ids = IdGenerator()
        self._expenses: List[Expense] = []
        self._income: List[Income] = []
        self._listeners: List[ChangeListener] = []
        self.archives = ArchiveManager(self.store, lock=self._lock)
        self.ledger = GoalLedger(
            self.store,
            deposits_provider=self.total_savings_deposited,
            id_generator=self._ids,
            lock=self._lock,
        )
        self.viewing_month = dv.current_month(self._today())

    # ------------------------------------------------------------------
    # Loading, observers and read access
    # ------------------------------------------------------------------
    def load(self) -> "BudgetTracker":
        with self._lock:
            expenses = [Expense.from_dict(row) for row in self.store.load_list(STORAGE_KEYS['EXPENSES'])]
            income = [Income.from_dict(row) for row in self.store.load_list(STORAGE_KEYS['INCOME'])]
            self.archives.load()
            self.ledger.load()
            for record in [*expenses, *income]:
                self._ids.observe(record.id)
            self._expenses = expenses
            self._income = income
        logger.info(
            "Loaded %d expenses, %d income records, %d goals, %d archives",
            len(expenses), len(income), len(self.ledger.goals), len(self.archives.archives),
        )
        self._notify('loaded')
        return self

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(change)``; returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_goal_completed(self, listener: GoalListener) -> Callable[[], None]:
        return self.ledger.add_completion_listener(listener)

    @property
    def expenses(self) -> List[Expense]:
        return list(self._expenses)

    @property
    def income(self) -> List[Income]:
        return list(self._income)

    @property
    def goals(self) -> List[FinancialGoal]:
        return self.ledger.goals

    @property
    def savings_entries(self) -> List[SavingsLedgerEntry]:
        return self.ledger.entries

    @property
    def monthly_archives(self) -> List[MonthlyArchive]:
        return self.archives.archives

    def total_savings_deposited(self) -> float:
        return dv.total_savings_deposited(self._expenses, self.archives.archives)

    def wallet_balance(self) -> float:
        return dv.wallet_balance(self._expenses, self.ledger.entries, self.archives.archives)

    def month_data(self, month: Optional[str] = None) -> MonthData:
        return self.archives.month_data(
            month or self.viewing_month, self._expenses, self._income, today=self._today(),
        )

    def available_months(self) -> List[str]:
        months = set(dv.months_with_entries(self._expenses, self._income, self.archives.archives))
        months.add(dv.current_month(self._today()))
        return sorted(months)

    def summary(self, month: Optional[str] = None) -> Dict[str, Any]:
        """Every derived figure the stats and goals screens show for ``month``."""
        month = month or self.viewing_month
        today = self._today()
        data = self.month_data(month)
        totals = dv.summarize_month(data.expenses, data.income)
        goals = self.ledger.goals
        return {
            'month': month,
            'archived': data.archived,
            'is_current_month': dv.is_current_month(month, today),
            'expenses': data.expenses,
            'income': data.income,
            'total_spent': totals['total_spent'],
            'total_income': totals['total_income'],
            'net_amount': totals['net_amount'],
            'month_savings': dv.total_amount(dv.savings_expenses(data.expenses)),
            'category_totals': dv.category_breakdown(data.expenses, include_savings=False),
            'source_totals': dv.source_breakdown(data.income),
            'projection': dv.projection_data(totals['total_spent'], totals['total_income'], month, today),
            'total_savings_deposited': self.total_savings_deposited(),
            'total_allocated': self.ledger.total_allocated(),
            'wallet_balance': self.wallet_balance(),
            'goal_progress': {goal.id: dv.goal_progress_percent(goal) for goal in goals},
            'active_goals': [goal for goal in goals if not goal.is_completed],
            'completed_goals': [goal for goal in goals if goal.is_completed],
        }

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def submit_expense(self, form: ExpenseFormData, expense_id: Optional[int] = None) -> Expense:
        """Record an expense; a ``Savings`` expense also deposits into the wallet.

        Passing the same ``expense_id`` twice records the expense once.
        """
        data = validate_expense_form(form)
        with self._lock:
            existing = self._find(self._expenses, expense_id)
            if existing is not None:
                return existing
            expense = Expense(id=expense_id or self._ids.next_id(), **data)
            expenses = [expense] + self._expenses
            rows = {STORAGE_KEYS['EXPENSES']: [e.to_dict() for e in expenses]}
            if dv.is_savings(expense):
                self.ledger.record_savings_deposit(
                    expense.amount, expense.description, entry_date=expense.date, extra_writes=rows,
                )
            else:
                self.store.save_lists(rows)
            self._expenses = expenses
        self._notify('savings' if dv.is_savings(expense) else 'expenses')
        return expense

    def submit_income(self, form: IncomeFormData, income_id: Optional[int] = None) -> Income:
        data = validate_income_form(form)
        with self._lock:
            existing = self._find(self._income, income_id)
            if existing is not None:
                return existing
            item = Income(id=income_id or self._ids.next_id(), **data)
            income = [item] + self._income
            self.store.save_list(STORAGE_KEYS['INCOME'], [i.to_dict() for i in income])
            self._income = income
        self._notify('income')
        return item

    def delete_expense(self, expense_id: int) -> bool:
        """Delete an expense; unknown ids are a no-op returning ``False``."""
        with self._lock:
            expenses = [e for e in self._expenses if e.id != expense_id]
            if len(expenses) == len(self._expenses):
                return False
            self.store.save_list(STORAGE_KEYS['EXPENSES'], [e.to_dict() for e in expenses])
            self._expenses = expenses
        self._notify('expenses')
        return True

    def delete_income(self, income_id: int) -> bool:
        with self._lock:
            income = [i for i in self._income if i.id != income_id]
            if len(income) == len(self._income):
                return False
            self.store.save_list(STORAGE_KEYS['INCOME'], [i.to_dict() for i in income])
            self._income = income
        self._notify('income')
        return True

    # ------------------------------------------------------------------
    # Goals and wallet
    # ------------------------------------------------------------------
    def create_goal(self, form: GoalFormData) -> FinancialGoal:
        goal = self.ledger.create_goal(validate_goal_form(form))
        self._notify('goals')
        return goal

    def update_goal(self, goal_id: int, form: GoalFormData) -> FinancialGoal:
        goal = self.ledger.update_goal(goal_id, validate_goal_form(form))
        self._notify('goals')
        return goal

    def delete_goal(self, goal_id: int) -> bool:
        deleted = self.ledger.delete_goal(goal_id)
        if deleted:
            self._notify('goals')
        return deleted

    def allocate_savings(self, goal_id: int, amount: Union[str, float]) -> FinancialGoal:
        """Move wallet funds into a goal.

        Raises ``InsufficientBalanceError`` carrying the shortfall when the
        wallet cannot cover ``amount``.
        """
        goal = self.ledger.allocate_to_goal(goal_id, parse_amount(amount))
        self._notify('goals')
        return goal

    def mark_goal_complete(self, goal_id: int) -> FinancialGoal:
        goal = self.ledger.mark_goal_complete(goal_id)
        self._notify('goals')
        return goal

    # ------------------------------------------------------------------
    # Months
    # ------------------------------------------------------------------
    def archive_month(self, month: str) -> MonthlyArchive:
        with self._lock:
            result = self.archives.archive_month(month, self._expenses, self._income, today=self._today())
            self._expenses = result.expenses
            self._income = result.income
        self._notify('archives')
        return result.archive

    def set_viewing_month(self, month: str) -> str:
        self.viewing_month = parse_month(month)
        self._notify('viewing_month')
        return self.viewing_month

    def compare_with_previous(self, month: Optional[str] = None) -> Optional[Dict[str, Any]]:
        month = month or self.viewing_month
        current = self.archives.get_archive(month)
        if current is None:
            return None
        return dv.compare_months(current, self.archives.previous_archive(month))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _find(records, record_id):
        if record_id is None:
            return None
        for record in records:
            if record.id == record_id:
                return record
        return None

    def _notify(self, change: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Change listener failed for %r", change)
