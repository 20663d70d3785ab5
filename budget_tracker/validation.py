"""Form-boundary validation.

Raw form values (strings typed by the user) are turned into clean numbers and
ISO dates here, before they reach the ledger or the derivation functions.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, Dict, Optional

import pandas as pd

from .catalog import goal_categories
from .errors import ValidationError
from .models import ExpenseFormData, GoalFormData, IncomeFormData

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def parse_amount(value: Any, field: str = 'amount') -> float:
    """Convert a textual amount into a positive float.

    Accepts plain numbers and strings with a leading ``$`` or thousands
    separators.  The value is rounded to cents before the sign check, so
    anything below half a cent is rejected along with empty, non-numeric,
    non-finite and negative input by raising :class:`ValidationError`.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Please enter an amount", field=field)
    if isinstance(value, bool):
        raise ValidationError("Amount must be a number", field=field)
    if isinstance(value, str):
        value = value.strip().replace("$", "").replace(",", "")
    parsed = pd.to_numeric([value], errors='coerce')
    number = parsed[0]
    if pd.isna(number) or not math.isfinite(float(number)):
        raise ValidationError("Amount must be a number", field=field)
    number = round(float(number), 2)
    if number <= 0:
        raise ValidationError("Amount must be greater than zero", field=field)
    return number


def parse_date(value: Any, field: str = 'date') -> str:
    """Normalize a date-like value to ``YYYY-MM-DD``."""
    if value is None or value == "":
        raise ValidationError("Please choose a date", field=field)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    ts = pd.to_datetime(str(value).strip(), errors='coerce', format='%Y-%m-%d')
    if pd.isna(ts):
        raise ValidationError(f"Invalid date: {value!r} (expected YYYY-MM-DD)", field=field)
    return ts.date().isoformat()


def parse_optional_date(value: Any, field: str = 'target_date') -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_date(value, field=field)


def parse_month(value: Any) -> str:
    """Validate a ``YYYY-MM`` viewing/archive month selector."""
    text = str(value or '').strip()
    if not MONTH_PATTERN.match(text):
        raise ValidationError(f"Invalid month: {value!r} (expected YYYY-MM)", field='month')
    return text


def require_text(value: Any, field: str) -> str:
    text = str(value or '').strip()
    if not text:
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required", field=field)
    return text


def validate_expense_form(form: ExpenseFormData) -> Dict[str, Any]:
    return {
        'amount': parse_amount(form.amount),
        'category': require_text(form.category, 'category'),
        'description': (form.description or '').strip(),
        'date': parse_date(form.date),
    }


def validate_income_form(form: IncomeFormData) -> Dict[str, Any]:
    return {
        'amount': parse_amount(form.amount),
        'source': require_text(form.source, 'source'),
        'description': (form.description or '').strip(),
        'date': parse_date(form.date),
    }


def validate_goal_form(form: GoalFormData) -> Dict[str, Any]:
    category = require_text(form.category, 'category')
    if category not in goal_categories():
        raise ValidationError(f"Unknown goal category: {category}", field='category')
    return {
        'title': require_text(form.title, 'title'),
        'description': (form.description or '').strip(),
        'target_amount': parse_amount(form.target_amount, field='target_amount'),
        'category': category,
        'target_date': parse_optional_date(form.target_date),
        'color': (form.color or '').strip() or '#6366f1',
        'icon': (form.icon or '').strip() or 'flag-outline',
    }
