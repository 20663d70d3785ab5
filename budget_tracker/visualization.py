"""Plotly visualisation helpers for the budget tracker.

Each function accepts the plain mappings or DataFrames produced by
:mod:`budget_tracker.derivations` and :mod:`budget_tracker.analytics` and
returns a ``plotly.graph_objects.Figure`` that Streamlit renders with
``st.plotly_chart``.  Empty inputs produce an empty figure titled
"No data to display" instead of raising.
"""

from __future__ import annotations

from typing import Dict, Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .catalog import category_color
from .derivations import goal_progress_percent
from .models import FinancialGoal


def _empty_figure() -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title="No data to display")
    return fig


def create_category_pie_chart(breakdown: Dict[str, float], title: str | None = None) -> go.Figure:
    """Pie chart of spending per category.

    Parameters
    ----------
    breakdown : dict
        Mapping of category name to summed amount, as returned by
        :func:`~budget_tracker.derivations.category_breakdown`.
    title : str, optional
        Chart title.

    Returns
    -------
    plotly.graph_objects.Figure
        Pie chart coloured with the catalog palette; unknown categories use
        the fallback colour.
    """
    values = {category: amount for category, amount in breakdown.items() if amount > 0}
    if not values:
        return _empty_figure()
    df = pd.DataFrame({"Category": list(values), "Value": list(values.values())})
    colors = {category: category_color(category)['text'] for category in values}
    fig = px.pie(df, names="Category", values="Value", color="Category", color_discrete_map=colors)
    fig.update_layout(title=title or "Spending by category")
    return fig


def create_monthly_bar_chart(monthly: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Grouped bars of income vs spending per month.

    Parameters
    ----------
    monthly : pandas.DataFrame
        Output of :meth:`BudgetAnalytics.calculate_monthly_breakdown`.
    title : str, optional
        Chart title.
    """
    if monthly.empty:
        return _empty_figure()
    long_df = monthly.melt(
        id_vars="Month_Label",
        value_vars=["Income", "Expenses", "Savings"],
        var_name="Flow",
        value_name="Amount",
    )
    fig = px.bar(long_df, x="Month_Label", y="Amount", color="Flow", barmode="group")
    fig.update_layout(
        title=title or "Income vs spending by month",
        xaxis_title="Month",
        yaxis_title="Amount",
    )
    return fig


def create_daily_spending_chart(daily: pd.DataFrame, title: str | None = None) -> go.Figure:
    """Cumulative spending line for one month."""
    if daily.empty:
        return _empty_figure()
    df = daily.reset_index()
    fig = px.line(df, x="Day", y="Cumulative", markers=True)
    fig.update_layout(
        title=title or "Cumulative spending",
        xaxis_title="Day",
        yaxis_title="Spent",
    )
    return fig


def create_goal_progress_chart(goals: Sequence[FinancialGoal], title: str | None = None) -> go.Figure:
    """Horizontal bars of progress per goal, in goal colours."""
    if not goals:
        return _empty_figure()
    fig = go.Figure(
        go.Bar(
            x=[goal_progress_percent(goal) for goal in goals],
            y=[goal.title for goal in goals],
            orientation="h",
            marker_color=[goal.color for goal in goals],
            text=[f"{goal_progress_percent(goal):.0f}%" for goal in goals],
            textposition="auto",
        )
    )
    fig.update_layout(
        title=title or "Goal progress",
        xaxis=dict(title="Progress (%)", range=[0, 100]),
    )
    return fig
