"""Shared sidebar and session helpers for the multi-page app.

Every page calls :func:`render_shared_sidebar`, which makes sure the session
has a loaded :class:`~budget_tracker.tracker.BudgetTracker`, renders the
viewing-month picker and the goals-wallet balance, and shows any goal
completions that happened since the last rerun.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple

import streamlit as st

from .errors import (
    BudgetTrackerError,
    InsufficientBalanceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .formatting import format_currency, format_month_year
from .tracker import BudgetTracker

TRACKER_KEY = 'tracker'
CELEBRATIONS_KEY = 'celebrations'
FLASH_KEY = 'flash_messages'


def get_tracker(factory: Callable[[], BudgetTracker] = BudgetTracker) -> BudgetTracker:
    """Return the session's tracker, loading it on first use."""
    state = st.session_state
    if TRACKER_KEY not in state:
        tracker = factory().load()
        state[CELEBRATIONS_KEY] = []
        tracker.on_goal_completed(lambda goal: state[CELEBRATIONS_KEY].append(goal.title))
        state[TRACKER_KEY] = tracker
    return state[TRACKER_KEY]


def pop_celebrations() -> List[str]:
    titles = list(st.session_state.get(CELEBRATIONS_KEY, []))
    st.session_state[CELEBRATIONS_KEY] = []
    return titles


def flash(message: str) -> None:
    """Queue a success message for the next render, surviving ``st.rerun()``."""
    st.session_state.setdefault(FLASH_KEY, []).append(message)


def pop_flash_messages() -> List[str]:
    messages = list(st.session_state.get(FLASH_KEY, []))
    st.session_state[FLASH_KEY] = []
    return messages


def error_message(exc: BudgetTrackerError) -> Tuple[str, str]:
    """Map a core error to a (level, message) pair for display."""
    if isinstance(exc, InsufficientBalanceError):
        return (
            'warning',
            f"Insufficient wallet balance: you need {format_currency(exc.shortfall)} more "
            f"(wallet {format_currency(exc.current_balance)}, required "
            f"{format_currency(exc.required_amount)}). Add a Savings expense to fund it.",
        )
    if isinstance(exc, ValidationError):
        return ('error', str(exc))
    if isinstance(exc, NotFoundError):
        return ('info', f"{exc.kind} no longer exists; nothing was changed.")
    if isinstance(exc, PersistenceError):
        return ('error', "Could not save your changes. Please try again.")
    return ('error', str(exc))


def show_error(exc: BudgetTrackerError) -> None:
    level, message = error_message(exc)
    getattr(st, level)(message)


def run_action(action: Callable[[], Any], success: str | None = None) -> bool:
    """Run a tracker mutation, reporting errors instead of raising them.

    A ``success`` message is queued with :func:`flash` so it is still shown
    when the caller reruns the page straight after.
    """
    try:
        action()
    except BudgetTrackerError as exc:
        show_error(exc)
        return False
    if success:
        flash(success)
    return True


def render_shared_sidebar() -> Dict[str, Any]:
    """Render shared sidebar elements available on all pages.

    Returns:
        Dict with keys: 'tracker', 'month'
    """
    try:
        tracker = get_tracker()
    except PersistenceError as exc:
        show_error(exc)
        st.stop()

    st.sidebar.title("💰 Budget Tracker")
    months = tracker.available_months()
    index = months.index(tracker.viewing_month) if tracker.viewing_month in months else len(months) - 1
    selected = st.sidebar.selectbox(
        "Viewing month",
        months,
        index=index,
        format_func=format_month_year,
    )
    if selected != tracker.viewing_month:
        tracker.set_viewing_month(selected)

    st.sidebar.metric("Goals wallet", format_currency(tracker.wallet_balance()))

    for message in pop_flash_messages():
        st.success(message)
    for title in pop_celebrations():
        st.success(f"🎉 Goal completed: {title}")

    return {'tracker': tracker, 'month': tracker.viewing_month}
