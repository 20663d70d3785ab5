"""Record types for the budget tracker.

Records are plain dataclasses.  Each one maps to and from the JSON shape that
is persisted under its storage key (camelCase field names), so older or
partially written payloads load with defaults instead of failing.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .catalog import get_catalog


def today_iso() -> str:
    return date.today().isoformat()


def now_iso() -> str:
    return datetime.now().isoformat()


class IdGenerator:
    """Timestamp-derived ids that are strictly increasing within a process.

    Two ids requested within the same millisecond would collide with a plain
    ``time.time()`` id, so the next id is always at least ``last + 1``.
    """

    def __init__(self, clock=None):
        self._clock = clock or time.time
        self._last = 0
        self._lock = threading.Lock()

    def observe(self, existing_id: int) -> None:
        """Make sure future ids are larger than an id already in use."""
        with self._lock:
            self._last = max(self._last, int(existing_id))

    def next_id(self) -> int:
        with self._lock:
            candidate = int(self._clock() * 1000)
            self._last = max(candidate, self._last + 1)
            return self._last


@dataclass
class Expense:
    id: int
    amount: float
    category: str
    description: str = ""
    date: str = field(default_factory=today_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'category': self.category,
            'description': self.description,
            'date': self.date,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Expense":
        return Expense(
            id=int(d.get('id', 0)),
            amount=float(d.get('amount', 0.0)),
            category=d.get('category') or 'Other',
            description=d.get('description') or '',
            date=d.get('date') or '',
        )


@dataclass
class Income:
    id: int
    amount: float
    source: str
    description: str = ""
    date: str = field(default_factory=today_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'source': self.source,
            'description': self.description,
            'date': self.date,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Income":
        return Income(
            id=int(d.get('id', 0)),
            amount=float(d.get('amount', 0.0)),
            source=d.get('source') or 'Other',
            description=d.get('description') or '',
            date=d.get('date') or '',
        )


@dataclass
class MonthlyArchive:
    """Snapshot of one finished month, removed from the live collections."""

    month: str
    expenses: List[Expense] = field(default_factory=list)
    income: List[Income] = field(default_factory=list)
    total_spent: float = 0.0
    total_income: float = 0.0
    net_amount: float = 0.0
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'month': self.month,
            'expenses': [e.to_dict() for e in self.expenses],
            'income': [i.to_dict() for i in self.income],
            'totalSpent': self.total_spent,
            'totalIncome': self.total_income,
            'netAmount': self.net_amount,
            'createdAt': self.created_at,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MonthlyArchive":
        return MonthlyArchive(
            month=d.get('month') or '',
            expenses=[Expense.from_dict(e) for e in d.get('expenses') or []],
            income=[Income.from_dict(i) for i in d.get('income') or []],
            total_spent=float(d.get('totalSpent', 0.0)),
            total_income=float(d.get('totalIncome', 0.0)),
            net_amount=float(d.get('netAmount', 0.0)),
            created_at=d.get('createdAt') or '',
        )


@dataclass
class FinancialGoal:
    id: int
    title: str
    target_amount: float
    description: str = ""
    current_amount: float = 0.0
    category: str = "savings"
    target_date: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    is_completed: bool = False
    color: str = "#6366f1"
    icon: str = "flag-outline"

    @property
    def remaining_amount(self) -> float:
        return max(0.0, round(self.target_amount - self.current_amount, 2))

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'targetAmount': self.target_amount,
            'currentAmount': self.current_amount,
            'category': self.category,
            'createdAt': self.created_at,
            'isCompleted': self.is_completed,
            'color': self.color,
            'icon': self.icon,
        }
        if self.target_date:
            payload['targetDate'] = self.target_date
        return payload

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "FinancialGoal":
        return FinancialGoal(
            id=int(d.get('id', 0)),
            title=d.get('title') or '',
            description=d.get('description') or '',
            target_amount=float(d.get('targetAmount', 0.0)),
            current_amount=float(d.get('currentAmount', 0.0)),
            category=d.get('category') or 'other',
            target_date=d.get('targetDate') or None,
            created_at=d.get('createdAt') or '',
            is_completed=bool(d.get('isCompleted', False)),
            color=d.get('color') or '#6366f1',
            icon=d.get('icon') or 'flag-outline',
        )

    def copy(self, **changes: Any) -> "FinancialGoal":
        return replace(self, **changes)


@dataclass(frozen=True)
class SavingsLedgerEntry:
    """Append-only wallet ledger row.

    Without ``allocated_to_goal`` the entry is a deposit; with it, the entry
    is an allocation of wallet funds to that goal.
    """

    id: int
    amount: float
    description: str = ""
    date: str = field(default_factory=today_iso)
    allocated_to_goal: Optional[int] = None

    @property
    def is_allocation(self) -> bool:
        return self.allocated_to_goal is not None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'id': self.id,
            'amount': self.amount,
            'description': self.description,
            'date': self.date,
        }
        if self.allocated_to_goal is not None:
            payload['allocatedToGoal'] = self.allocated_to_goal
        return payload

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SavingsLedgerEntry":
        goal_id = d.get('allocatedToGoal')
        return SavingsLedgerEntry(
            id=int(d.get('id', 0)),
            amount=float(d.get('amount', 0.0)),
            description=d.get('description') or '',
            date=d.get('date') or '',
            allocated_to_goal=int(goal_id) if goal_id is not None else None,
        )


def _form_default(kind: str, key: str) -> str:
    return get_catalog()['form_defaults'][kind][key]


@dataclass
class ExpenseFormData:
    amount: str = ""
    category: str = field(default_factory=lambda: _form_default('expense', 'category'))
    description: str = ""
    date: str = field(default_factory=today_iso)


@dataclass
class IncomeFormData:
    amount: str = ""
    source: str = field(default_factory=lambda: _form_default('income', 'source'))
    description: str = ""
    date: str = field(default_factory=today_iso)


@dataclass
class GoalFormData:
    title: str = ""
    description: str = ""
    target_amount: str = ""
    category: str = field(default_factory=lambda: _form_default('goal', 'category'))
    target_date: str = ""
    color: str = field(default_factory=lambda: _form_default('goal', 'color'))
    icon: str = field(default_factory=lambda: _form_default('goal', 'icon'))
