"""Error taxonomy for the budget tracker core.

Every error raised by the core derives from :class:`BudgetTrackerError`, so
the presentation layer can catch one type at its boundary and show a message.
"""

from __future__ import annotations

from typing import Optional

from .formatting import format_currency


class BudgetTrackerError(Exception):
    """Base class for recoverable budget tracker errors."""


class ValidationError(BudgetTrackerError, ValueError):
    """Malformed or non-positive amounts and missing required fields."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InsufficientBalanceError(BudgetTrackerError):
    """An allocation or completion request exceeds the goals wallet."""

    def __init__(self, required_amount: float, current_balance: float):
        self.required_amount = round(float(required_amount), 2)
        self.current_balance = round(float(current_balance), 2)
        self.shortfall = round(self.required_amount - self.current_balance, 2)
        super().__init__(
            f"You need {format_currency(self.shortfall)} more in your goals wallet. "
            f"Add a Savings expense to fund it."
        )


class PersistenceError(BudgetTrackerError):
    """The underlying store could not be read or written."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class NotFoundError(BudgetTrackerError, LookupError):
    """A goal, expense or income id no longer exists."""

    def __init__(self, kind: str, record_id: int):
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id
