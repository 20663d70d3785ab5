"""Financial derivation engine.

Pure functions over the in-memory collections.  Nothing here touches storage
or mutates its arguments, so every figure shown by the app can be recomputed
from the committed collections and tested without a store.

Dates are compared as opaque ``YYYY-MM-DD`` strings: a record belongs to a
month when its ``date`` starts with the ``YYYY-MM`` selector.
"""

from __future__ import annotations

import calendar
import math
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar, Union

from .catalog import SAVINGS_CATEGORY, get_catalog
from .models import Expense, FinancialGoal, Income, MonthlyArchive, SavingsLedgerEntry

Record = TypeVar('Record', Expense, Income)


def current_month(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime('%Y-%m')


def is_current_month(month: str, today: Optional[date] = None) -> bool:
    return month == current_month(today)


def days_in_month(month: Union[str, date, None] = None) -> int:
    """Number of days in a ``YYYY-MM`` month (or the month of a date)."""
    if month is None:
        month = date.today()
    if isinstance(month, date):
        return calendar.monthrange(month.year, month.month)[1]
    year, month_number = month.split('-')[:2]
    return calendar.monthrange(int(year), int(month_number))[1]


def filter_by_month(records: Iterable[Record], month: str) -> List[Record]:
    return [record for record in records if record.date.startswith(month)]


def total_amount(records: Iterable[Union[Expense, Income, SavingsLedgerEntry]]) -> float:
    """Sum of ``amount`` fields, rounded to cents; 0 for empty input."""
    return round(math.fsum(record.amount for record in records), 2)


def is_savings(expense: Expense) -> bool:
    return expense.category == SAVINGS_CATEGORY


def spending_expenses(expenses: Iterable[Expense]) -> List[Expense]:
    """Expenses that count as actual spending (``Savings`` excluded)."""
    return [expense for expense in expenses if not is_savings(expense)]


def savings_expenses(expenses: Iterable[Expense]) -> List[Expense]:
    return [expense for expense in expenses if is_savings(expense)]


def category_breakdown(expenses: Iterable[Expense], *, include_savings: bool) -> Dict[str, float]:
    """Map category -> summed amount.

    Spending views pass ``include_savings=False``; wallet bookkeeping passes
    ``include_savings=True``.  The flag is keyword-only and required so every
    caller states which one it wants.
    """
    breakdown: Dict[str, float] = {}
    for expense in expenses:
        if not include_savings and is_savings(expense):
            continue
        breakdown[expense.category] = round(breakdown.get(expense.category, 0.0) + expense.amount, 2)
    return breakdown


def source_breakdown(income: Iterable[Income]) -> Dict[str, float]:
    breakdown: Dict[str, float] = {}
    for item in income:
        breakdown[item.source] = round(breakdown.get(item.source, 0.0) + item.amount, 2)
    return breakdown


def net_amount(total_income: float, total_spent: float) -> float:
    """Income minus spending; ``total_spent`` must already exclude Savings."""
    return round(total_income - total_spent, 2)


def summarize_month(expenses: Sequence[Expense], income: Sequence[Income]) -> Dict[str, float]:
    """Totals for one month's records, with Savings left out of spending."""
    total_spent = total_amount(spending_expenses(expenses))
    total_income = total_amount(income)
    return {
        'total_spent': total_spent,
        'total_income': total_income,
        'net_amount': net_amount(total_income, total_spent),
    }


def monthly_projection(current_amount: float, days_in_month: int, today: Optional[date] = None) -> float:
    """Linear month-end extrapolation from the daily average so far.

    On the first day of the month, or with nothing recorded yet, the current
    amount is returned unchanged.
    """
    day = (today or date.today()).day
    if day <= 1 or current_amount == 0:
        return current_amount
    daily_average = current_amount / day
    return current_amount + daily_average * (days_in_month - day)


def projection_data(
    total_spent: float,
    total_income: float,
    viewing_month: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, float]:
    """Projection figures for the stats screen.

    Only the current calendar month is projected; any other viewing month
    yields zeros.
    """
    today = today or date.today()
    if viewing_month is not None and not is_current_month(viewing_month, today):
        return {
            'projected_spending': 0.0,
            'projected_income': 0.0,
            'projected_net': 0.0,
            'avg_daily_spending': 0.0,
            'days_passed': 0,
            'days_remaining': 0,
            'days_in_month': 0,
        }
    month_days = days_in_month(today)
    days_passed = today.day
    projected_spending = monthly_projection(total_spent, month_days, today)
    projected_income = monthly_projection(total_income, month_days, today)
    return {
        'projected_spending': projected_spending,
        'projected_income': projected_income,
        'projected_net': projected_income - projected_spending,
        'avg_daily_spending': total_spent / days_passed if days_passed > 0 else 0.0,
        'days_passed': days_passed,
        'days_remaining': month_days - days_passed,
        'days_in_month': month_days,
    }


def goal_progress_percent(goal: FinancialGoal) -> float:
    """Progress in percent, capped at 100.  A zero target counts as done."""
    if goal.target_amount <= 0:
        return 100.0
    return min(goal.current_amount / goal.target_amount, 1.0) * 100


def total_savings_deposited(
    expenses: Iterable[Expense],
    archives: Iterable[MonthlyArchive] = (),
) -> float:
    """All-time Savings contributions, including months already archived."""
    archived = [expense for archive in archives for expense in archive.expenses]
    return total_amount(savings_expenses(list(expenses) + archived))


def total_allocated(ledger: Iterable[SavingsLedgerEntry]) -> float:
    return total_amount(entry for entry in ledger if entry.is_allocation)


def wallet_balance(
    expenses: Iterable[Expense],
    ledger: Iterable[SavingsLedgerEntry],
    archives: Iterable[MonthlyArchive] = (),
) -> float:
    """Unallocated goals-wallet balance; never negative."""
    return max(0.0, round(total_savings_deposited(expenses, archives) - total_allocated(ledger), 2))


def months_with_entries(
    expenses: Iterable[Expense],
    income: Iterable[Income],
    archives: Iterable[MonthlyArchive] = (),
) -> List[str]:
    months = {record.date[:7] for record in list(expenses) + list(income) if record.date}
    months.update(archive.month for archive in archives)
    return sorted(months)


def recent_months(count: Optional[int] = None, today: Optional[date] = None) -> List[str]:
    """The last ``count`` months, oldest first, ending with the current month."""
    if count is None:
        count = get_catalog()['constants']['recent_month_count']
    today = today or date.today()
    months = []
    for offset in range(count - 1, -1, -1):
        index = today.year * 12 + (today.month - 1) - offset
        months.append(f"{index // 12:04d}-{index % 12 + 1:02d}")
    return months


def monthly_report(month: str, expenses: Iterable[Expense], income: Iterable[Income]) -> Dict[str, object]:
    """Summary of one month: totals, net, count and the top five categories."""
    month_expenses = filter_by_month(expenses, month)
    month_income = filter_by_month(income, month)
    totals = summarize_month(month_expenses, month_income)
    breakdown = category_breakdown(month_expenses, include_savings=False)
    top_count = get_catalog()['constants']['top_category_count']
    top_categories = sorted(
        ((category, total) for category, total in breakdown.items() if total > 0),
        key=lambda item: item[1],
        reverse=True,
    )[:top_count]
    return {
        'month': month,
        'total_spent': totals['total_spent'],
        'total_income': totals['total_income'],
        'net_amount': totals['net_amount'],
        'transaction_count': len(month_expenses) + len(month_income),
        'top_categories': top_categories,
    }


def compare_months(current: MonthlyArchive, previous: Optional[MonthlyArchive] = None) -> Dict[str, object]:
    """Month-over-month deltas; all zero when there is no previous month."""
    if previous is None:
        changes = (0.0, 0.0, 0.0)
    else:
        changes = (
            round(current.total_spent - previous.total_spent, 2),
            round(current.total_income - previous.total_income, 2),
            round(current.net_amount - previous.net_amount, 2),
        )
    return {
        'current_month': current,
        'previous_month': previous,
        'spending_change': changes[0],
        'income_change': changes[1],
        'net_change': changes[2],
    }
