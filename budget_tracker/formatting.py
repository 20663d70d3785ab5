"""Formatting utilities for currency, dates and month labels."""

from __future__ import annotations

from datetime import date, datetime
from typing import Union


def format_currency(amount: Union[float, int], include_sign: bool = True) -> str:
    """Format a currency amount with proper formatting.

    Args:
        amount: The amount to format
        include_sign: Whether to include the dollar sign

    Returns:
        Formatted currency string (e.g., "$1,234.56" or "1,234.56")

    Example:
        >>> format_currency(1234.56)
        '$1,234.56'
        >>> format_currency(1234.56, include_sign=False)
        '1,234.56'
    """
    formatted = f"{amount:,.2f}"
    return f"${formatted}" if include_sign else formatted


def escape_dollar_for_markdown(amount: float) -> str:
    """Format a dollar amount and escape the dollar sign for markdown rendering.

    Streamlit treats ``$`` as a LaTeX delimiter, so amounts shown through
    ``st.markdown`` need the sign escaped.

    Example:
        >>> escape_dollar_for_markdown(1234.56)
        '\\\\$1,234.56'
    """
    return format_currency(amount).replace("$", "\\$")


def _month_start(month: str) -> date:
    year, month_number = month.split('-')[:2]
    return date(int(year), int(month_number), 1)


def format_month_year(month: str) -> str:
    """Render a ``YYYY-MM`` string as e.g. ``January 2025``."""
    return _month_start(month).strftime('%B %Y')


def month_name(month: str) -> str:
    """Render a ``YYYY-MM`` string as the bare month name."""
    return _month_start(month).strftime('%B')


def month_year(month: str) -> str:
    return month.split('-')[0]


def format_date(date_string: str) -> str:
    """Render an ISO date as e.g. ``Jan 5, 2025``."""
    parsed = datetime.strptime(date_string[:10], '%Y-%m-%d')
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"
