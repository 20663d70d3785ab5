"""Overview page: headline figures for the viewing month."""

from __future__ import annotations

import streamlit as st

from .analytics import BudgetAnalytics
from .formatting import format_currency, format_month_year
from .shared_sidebar import render_shared_sidebar
from .visualization import create_category_pie_chart, create_goal_progress_chart


def render_overview(summary: dict) -> None:
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Spent", format_currency(summary['total_spent']))
    col2.metric("Income", format_currency(summary['total_income']))
    col3.metric("Net", format_currency(summary['net_amount']))
    col4.metric("Saved this month", format_currency(summary['month_savings']))

    if summary['is_current_month']:
        projection = summary['projection']
        st.caption(
            f"Projected month-end spending {format_currency(projection['projected_spending'])} "
            f"({projection['days_remaining']} days left)"
        )
    elif summary['archived']:
        st.caption("This month is archived and shown read-only.")


def main() -> None:
    st.set_page_config(page_title="Budget Tracker", page_icon="💰", layout="wide")
    sidebar = render_shared_sidebar()
    tracker = sidebar['tracker']
    summary = tracker.summary()

    st.header(f"💰 {format_month_year(summary['month'])}")
    render_overview(summary)

    left, right = st.columns(2)
    with left:
        st.plotly_chart(create_category_pie_chart(summary['category_totals']), use_container_width=True)
    with right:
        st.plotly_chart(create_goal_progress_chart(tracker.goals), use_container_width=True)

    goals = BudgetAnalytics.goal_progress_table(summary['active_goals'])
    if not goals.empty:
        st.subheader("Active goals")
        st.dataframe(goals, use_container_width=True, hide_index=True)
