"""Monthly archives.

Archiving a month moves its expenses and income out of the live collections
into a single ``MonthlyArchive`` record.  The archive list and both live
collections are written in one ``set_many`` call, which is a single
transaction on the SQLite backend.
"""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import List, NamedTuple, Optional, Sequence, Tuple

from .derivations import filter_by_month, is_current_month, summarize_month
from .errors import ValidationError
from .models import Expense, Income, MonthlyArchive, now_iso
from .storage import STORAGE_KEYS, KeyValueStore
from .validation import parse_month

logger = logging.getLogger(__name__)


class ArchiveResult(NamedTuple):
    archive: MonthlyArchive
    expenses: List[Expense]
    income: List[Income]


class MonthData(NamedTuple):
    expenses: List[Expense]
    income: List[Income]
    archived: bool


def build_archive(
    month: str,
    expenses: Sequence[Expense],
    income: Sequence[Income],
    created_at: Optional[str] = None,
) -> MonthlyArchive:
    totals = summarize_month(expenses, income)
    return MonthlyArchive(
        month=month,
        expenses=list(expenses),
        income=list(income),
        total_spent=totals['total_spent'],
        total_income=totals['total_income'],
        net_amount=totals['net_amount'],
        created_at=created_at or now_iso(),
    )


def _merge_by_id(existing, incoming):
    seen = {record.id for record in existing}
    return list(existing) + [record for record in incoming if record.id not in seen]


class ArchiveManager:
    """Owns the ``monthlyArchives`` collection."""

    def __init__(self, store: KeyValueStore, lock: Optional[threading.RLock] = None):
        self.store = store
        self._lock = lock or threading.RLock()
        self._archives: List[MonthlyArchive] = []

    def load(self) -> None:
        with self._lock:
            self._archives = [
                MonthlyArchive.from_dict(row)
                for row in self.store.load_list(STORAGE_KEYS['MONTHLY_ARCHIVES'])
            ]

    @property
    def archives(self) -> List[MonthlyArchive]:
        return list(self._archives)

    def archived_months(self) -> List[str]:
        return sorted(archive.month for archive in self._archives)

    def get_archive(self, month: str) -> Optional[MonthlyArchive]:
        for archive in self._archives:
            if archive.month == month:
                return archive
        return None

    def previous_archive(self, month: str) -> Optional[MonthlyArchive]:
        earlier = [archive for archive in self._archives if archive.month < month]
        return max(earlier, key=lambda archive: archive.month) if earlier else None

    def archive_month(
        self,
        month: str,
        expenses: Sequence[Expense],
        income: Sequence[Income],
        today: Optional[date] = None,
    ) -> ArchiveResult:
        """Archive ``month`` and return the archive plus the remaining live records.

        Re-archiving a month keeps a single archive for it.  Records already
        in that archive are kept, and live records of the month that appeared
        since are merged in.  When there is nothing new the existing archive
        is returned untouched and nothing is written.

        The current calendar month cannot be archived: it is still open and
        its view reads live records only.
        """
        month = parse_month(month)
        if is_current_month(month, today):
            raise ValidationError(f"{month} is the current month and cannot be archived yet", field="month")
        with self._lock:
            month_expenses = filter_by_month(expenses, month)
            month_income = filter_by_month(income, month)
            remaining_expenses = [e for e in expenses if not e.date.startswith(month)]
            remaining_income = [i for i in income if not i.date.startswith(month)]

            existing = self.get_archive(month)
            if existing is not None:
                if not month_expenses and not month_income:
                    return ArchiveResult(existing, list(expenses), list(income))
                archive = build_archive(
                    month,
                    _merge_by_id(existing.expenses, month_expenses),
                    _merge_by_id(existing.income, month_income),
                )
            else:
                archive = build_archive(month, month_expenses, month_income)

            archives = [a for a in self._archives if a.month != month] + [archive]
            archives.sort(key=lambda a: a.month, reverse=True)
            self.store.save_lists({
                STORAGE_KEYS['MONTHLY_ARCHIVES']: [a.to_dict() for a in archives],
                STORAGE_KEYS['EXPENSES']: [e.to_dict() for e in remaining_expenses],
                STORAGE_KEYS['INCOME']: [i.to_dict() for i in remaining_income],
            })
            self._archives = archives
            logger.info(
                "Archived %s: %d expenses, %d income records",
                month, len(archive.expenses), len(archive.income),
            )
            return ArchiveResult(archive, remaining_expenses, remaining_income)

    def month_data(
        self,
        month: str,
        expenses: Sequence[Expense],
        income: Sequence[Income],
        today: Optional[date] = None,
    ) -> MonthData:
        """Records to display for ``month``.

        Past months are read from their archive when one exists.  Live
        records dated in an archived month (added after archiving) are shown
        alongside it.
        """
        live_expenses = filter_by_month(expenses, month)
        live_income = filter_by_month(income, month)
        archive = None if is_current_month(month, today) else self.get_archive(month)
        if archive is None:
            return MonthData(live_expenses, live_income, False)
        return MonthData(
            _merge_by_id(archive.expenses, live_expenses),
            _merge_by_id(archive.income, live_income),
            True,
        )

