"""Tabular analytics over expenses, income and archives.

``BudgetAnalytics`` flattens live and archived records into one pandas
DataFrame and derives the monthly and category tables shown on the stats and
history pages and written by the CSV report.  Savings contributions are kept
in the frame but never counted as spending.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from . import config
from .catalog import SAVINGS_CATEGORY
from .derivations import goal_progress_percent
from .models import Expense, FinancialGoal, Income, MonthlyArchive

FRAME_COLUMNS = ['id', 'Date', 'Type', 'Category', 'Description', 'Amount', 'Archived']


def transactions_frame(
    expenses: Iterable[Expense],
    income: Iterable[Income],
    archives: Iterable[MonthlyArchive] = (),
) -> pd.DataFrame:
    """One row per expense or income record, live and archived."""
    rows = []

    def add(records, archived):
        for record in records:
            is_expense = isinstance(record, Expense)
            rows.append({
                'id': record.id,
                'Date': record.date,
                'Type': 'Expense' if is_expense else 'Income',
                'Category': record.category if is_expense else record.source,
                'Description': record.description,
                'Amount': record.amount,
                'Archived': archived,
            })

    add(expenses, False)
    add(income, False)
    for archive in archives:
        add(archive.expenses, True)
        add(archive.income, True)
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


class BudgetAnalytics:
    """Budget analytics and calculations."""

    def __init__(
        self,
        expenses: Sequence[Expense],
        income: Sequence[Income],
        archives: Sequence[MonthlyArchive] = (),
    ):
        self.data = transactions_frame(expenses, income, archives)
        self._prepare_data()

    def _prepare_data(self) -> None:
        """Prepare data for analysis."""
        self.data['Date'] = pd.to_datetime(self.data['Date'], errors='coerce')
        self.data = self.data.dropna(subset=['Date']).copy()
        self.data['Amount'] = pd.to_numeric(self.data['Amount'], errors='coerce').fillna(0.0)
        self.data['Month'] = self.data['Date'].dt.strftime('%Y-%m')
        self.data['Is Savings'] = (self.data['Type'] == 'Expense') & (self.data['Category'] == SAVINGS_CATEGORY)

    def _expense_rows(self, df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        source = df if df is not None else self.data
        return source[(source['Type'] == 'Expense') & ~source['Is Savings']].copy()

    def _income_rows(self, df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        source = df if df is not None else self.data
        return source[source['Type'] == 'Income'].copy()

    def _month_rows(self, month: Optional[str]) -> pd.DataFrame:
        if month is None:
            return self.data
        return self.data[self.data['Month'] == month]

    def calculate_monthly_breakdown(self) -> pd.DataFrame:
        """Income, spending, savings and net per month, oldest first."""
        columns = ['Month_Label', 'Income', 'Expenses', 'Savings', 'Net', 'Transaction_Count']
        if self.data.empty:
            return pd.DataFrame(columns=columns)

        kind = np.select(
            [self.data['Type'] == 'Income', self.data['Is Savings']],
            ['Income', 'Savings'],
            default='Expenses',
        )
        pivot = (
            self.data.assign(Kind=kind)
            .pivot_table(index='Month', columns='Kind', values='Amount', aggfunc='sum', fill_value=0.0)
            .reindex(columns=['Income', 'Expenses', 'Savings'], fill_value=0.0)
        )
        monthly = pivot.reset_index().rename(columns={'Month': 'Month_Label'})
        monthly['Net'] = (monthly['Income'] - monthly['Expenses']).round(2)
        counts = self.data.groupby('Month').size()
        monthly['Transaction_Count'] = monthly['Month_Label'].map(counts).fillna(0).astype(int)
        monthly.columns.name = None
        return monthly.sort_values('Month_Label').reset_index(drop=True)[columns]

    def calculate_category_spending(self, month: Optional[str] = None) -> pd.DataFrame:
        """Spending by category, Savings excluded, largest first."""
        expenses = self._expense_rows(self._month_rows(month))
        if expenses.empty:
            return pd.DataFrame(columns=['Total_Spent', 'Transaction_Count', 'Avg_Transaction', 'Share_Percent'])

        category_spending = expenses.groupby('Category')['Amount'].agg(['sum', 'count', 'mean']).round(2)
        category_spending.columns = ['Total_Spent', 'Transaction_Count', 'Avg_Transaction']
        total = category_spending['Total_Spent'].sum()
        category_spending['Share_Percent'] = (
            (category_spending['Total_Spent'] / total * 100).round(1) if total else 0.0
        )
        return category_spending.sort_values('Total_Spent', ascending=False)

    def calculate_source_income(self, month: Optional[str] = None) -> pd.Series:
        income = self._income_rows(self._month_rows(month))
        if income.empty:
            return pd.Series(dtype=float, name='Amount')
        return income.groupby('Category')['Amount'].sum().sort_values(ascending=False)

    def daily_spending(self, month: str) -> pd.DataFrame:
        """Spending per calendar day of ``month`` with a running total."""
        expenses = self._expense_rows(self._month_rows(month))
        if expenses.empty:
            return pd.DataFrame(columns=['Spent', 'Cumulative'])
        daily = expenses.groupby(expenses['Date'].dt.date)['Amount'].sum().to_frame('Spent')
        daily.index.name = 'Day'
        daily['Cumulative'] = daily['Spent'].cumsum()
        return daily

    @staticmethod
    def goal_progress_table(goals: Sequence[FinancialGoal]) -> pd.DataFrame:
        """Progress rows for each goal."""
        rows = []
        for goal in goals:
            rows.append({
                'Goal': goal.title,
                'Category': goal.category,
                'Current': goal.current_amount,
                'Target': goal.target_amount,
                'Remaining': goal.remaining_amount,
                'Progress_Percent': round(goal_progress_percent(goal), 1),
                'Target_Date': goal.target_date or '',
                'Status': 'Completed' if goal.is_completed else 'In Progress',
            })
        return pd.DataFrame(rows, columns=[
            'Goal', 'Category', 'Current', 'Target', 'Remaining',
            'Progress_Percent', 'Target_Date', 'Status',
        ])

    def export_analysis_report(self, filename: Union[str, Path, None] = None) -> Path:
        """Write monthly summaries and all-time category spending to CSV."""
        if filename is None:
            config.ensure_data_directories()
            filename = config.REPORTS_DIR / f"budget_report_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
        target = Path(filename)

        report_data: List[dict] = []
        for _, row in self.calculate_monthly_breakdown().iterrows():
            report_data.append({
                'Period': row['Month_Label'],
                'Type': 'Monthly Summary',
                'Income': row['Income'],
                'Expenses': row['Expenses'],
                'Savings': row['Savings'],
                'Net': row['Net'],
            })
        for category, row in self.calculate_category_spending().iterrows():
            report_data.append({
                'Period': 'All Time',
                'Type': 'Category Spending',
                'Category': category,
                'Total Spent': row['Total_Spent'],
                'Transaction Count': row['Transaction_Count'],
                'Avg Transaction': row['Avg_Transaction'],
            })

        target.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(report_data).to_csv(target, index=False)
        return target
