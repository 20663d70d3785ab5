"""Goal and savings-wallet bookkeeping.

The goals wallet is funded by ``Savings`` expenses and drained by allocations.
Both kinds of movement are recorded in an append-only savings ledger; an
allocation also raises exactly one goal's ``current_amount``.  Every mutation
builds the new collections first, writes them, and only swaps them into memory
once the write has succeeded.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from .catalog import get_catalog
from .derivations import total_allocated
from .errors import InsufficientBalanceError, NotFoundError, ValidationError
from .models import FinancialGoal, IdGenerator, SavingsLedgerEntry, now_iso, today_iso
from .storage import STORAGE_KEYS, KeyValueStore

logger = logging.getLogger(__name__)

GoalListener = Callable[[FinancialGoal], None]

ALLOCATION_DESCRIPTION = 'Allocated to goal'


def default_goals(today: Optional[date] = None) -> List[FinancialGoal]:
    """Starter goals created the first time goals are loaded."""
    today = today or date.today()
    created_at = now_iso()
    goals = []
    for entry in get_catalog()['default_goals']:
        goals.append(FinancialGoal(
            id=entry['id'],
            title=entry['title'],
            description=entry['description'],
            target_amount=float(entry['target_amount']),
            current_amount=0.0,
            category=entry['category'],
            target_date=(today + timedelta(days=entry['days_until_target'])).isoformat(),
            created_at=created_at,
            is_completed=False,
            color=entry['color'],
            icon=entry['icon'],
        ))
    return goals


class GoalLedger:
    """Owns the goals collection and the savings ledger.

    Args:
        store: Persistence gateway.
        deposits_provider: Returns the all-time total of ``Savings`` expenses.
            The wallet balance is that total minus all recorded allocations.
        id_generator: Shared id source for goals and ledger entries.
        lock: Lock serializing mutations; shared with the other managers.
    """

    def __init__(
        self,
        store: KeyValueStore,
        deposits_provider: Callable[[], float],
        id_generator: Optional[IdGenerator] = None,
        lock: Optional[threading.RLock] = None,
    ):
        self.store = store
        self._deposits_provider = deposits_provider
        self._ids = id_generator or IdGenerator()
        self._lock = lock or threading.RLock()
        self._goals: List[FinancialGoal] = []
        self._entries: List[SavingsLedgerEntry] = []
        self._listeners: List[GoalListener] = []

    # ------------------------------------------------------------------
    # Loading and read access
    # ------------------------------------------------------------------
    def load(self) -> None:
        with self._lock:
            if self.store.get(STORAGE_KEYS['GOALS']) is None:
                goals = default_goals()
                self.store.save_list(STORAGE_KEYS['GOALS'], [g.to_dict() for g in goals])
                logger.info("Seeded %d default goals", len(goals))
            else:
                goals = [FinancialGoal.from_dict(row) for row in self.store.load_list(STORAGE_KEYS['GOALS'])]
            entries = [
                SavingsLedgerEntry.from_dict(row)
                for row in self.store.load_list(STORAGE_KEYS['SAVINGS'])
            ]
            for record in [*goals, *entries]:
                self._ids.observe(record.id)
            self._goals = goals
            self._entries = entries

    @property
    def goals(self) -> List[FinancialGoal]:
        return list(self._goals)

    @property
    def entries(self) -> List[SavingsLedgerEntry]:
        return list(self._entries)

    def get_goal(self, goal_id: int) -> FinancialGoal:
        for goal in self._goals:
            if goal.id == goal_id:
                return goal
        raise NotFoundError('Goal', goal_id)

    def active_goals(self) -> List[FinancialGoal]:
        return [goal for goal in self._goals if not goal.is_completed]

    def completed_goals(self) -> List[FinancialGoal]:
        return [goal for goal in self._goals if goal.is_completed]

    def total_allocated(self) -> float:
        return total_allocated(self._entries)

    def wallet_balance(self) -> float:
        return max(0.0, round(self._deposits_provider() - self.total_allocated(), 2))

    def add_completion_listener(self, listener: GoalListener) -> Callable[[], None]:
        """Register a callback fired once when a goal becomes completed."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Wallet movements
    # ------------------------------------------------------------------
    def record_savings_deposit(
        self,
        amount: float,
        description: str = '',
        entry_date: Optional[str] = None,
        extra_writes: Optional[Mapping[str, List[Dict[str, Any]]]] = None,
    ) -> SavingsLedgerEntry:
        """Append a deposit entry.

        ``extra_writes`` lets the caller persist the matching ``Savings``
        expense in the same write as the ledger entry.
        """
        _require_positive(amount)
        with self._lock:
            entry = SavingsLedgerEntry(
                id=self._ids.next_id(),
                amount=round(float(amount), 2),
                description=description,
                date=entry_date or today_iso(),
            )
            entries = self._entries + [entry]
            self._commit(entries=entries, extra_writes=extra_writes)
            return entry

    def allocate_to_goal(self, goal_id: int, amount: float) -> FinancialGoal:
        """Move ``amount`` from the wallet into a goal.

        Raises:
            ValidationError: ``amount`` is not positive.
            NotFoundError: the goal does not exist.
            InsufficientBalanceError: ``amount`` exceeds the wallet balance.
        """
        _require_positive(amount)
        amount = round(float(amount), 2)
        with self._lock:
            goal = self.get_goal(goal_id)
            balance = self.wallet_balance()
            if amount > balance:
                logger.info(
                    "Rejected allocation of %.2f to goal %s: wallet holds %.2f",
                    amount, goal_id, balance,
                )
                raise InsufficientBalanceError(amount, balance)

            entry = SavingsLedgerEntry(
                id=self._ids.next_id(),
                amount=amount,
                description=ALLOCATION_DESCRIPTION,
                date=today_iso(),
                allocated_to_goal=goal_id,
            )
            new_amount = min(round(goal.current_amount + amount, 2), goal.target_amount)
            updated = goal.copy(
                current_amount=new_amount,
                is_completed=goal.is_completed or new_amount >= goal.target_amount,
            )
            self._commit(goals=self._replace_goal(updated), entries=self._entries + [entry])
        self._announce_if_completed(goal, updated)
        return updated

    def mark_goal_complete(self, goal_id: int) -> FinancialGoal:
        """Complete a goal, funding any remaining shortfall from the wallet.

        A goal that is already fully funded is just flagged complete.
        Otherwise the shortfall goes through :meth:`allocate_to_goal`, so the
        wallet is charged for it; if the wallet cannot cover the shortfall an
        :class:`InsufficientBalanceError` is raised and nothing changes.
        """
        with self._lock:
            goal = self.get_goal(goal_id)
            if goal.is_completed:
                return goal
            shortfall = round(goal.target_amount - goal.current_amount, 2)
            if shortfall <= 0:
                updated = goal.copy(current_amount=goal.target_amount, is_completed=True)
                self._commit(goals=self._replace_goal(updated))
            else:
                balance = self.wallet_balance()
                if balance < shortfall:
                    logger.info(
                        "Cannot complete goal %s: needs %.2f, wallet holds %.2f",
                        goal_id, shortfall, balance,
                    )
                    raise InsufficientBalanceError(shortfall, balance)
                return self.allocate_to_goal(goal_id, shortfall)
        self._announce_if_completed(goal, updated)
        return updated

    # ------------------------------------------------------------------
    # Goal CRUD
    # ------------------------------------------------------------------
    def create_goal(self, data: Mapping[str, Any]) -> FinancialGoal:
        """Create a goal from validated form data (see ``validate_goal_form``)."""
        _require_positive(data['target_amount'], field='target_amount')
        with self._lock:
            goal_id = self._ids.next_id()
            while any(goal.id == goal_id for goal in self._goals):
                goal_id = self._ids.next_id()
            goal = FinancialGoal(
                id=goal_id,
                title=data['title'],
                description=data.get('description', ''),
                target_amount=float(data['target_amount']),
                current_amount=0.0,
                category=data.get('category', 'savings'),
                target_date=data.get('target_date'),
                created_at=now_iso(),
                is_completed=False,
                color=data.get('color', '#6366f1'),
                icon=data.get('icon', 'flag-outline'),
            )
            self._commit(goals=self._goals + [goal])
            return goal

    def update_goal(self, goal_id: int, data: Mapping[str, Any]) -> FinancialGoal:
        """Replace a goal's editable fields.

        Progress is clamped to a lowered target.  A completed goal stays
        completed whatever the new target is.
        """
        _require_positive(data['target_amount'], field='target_amount')
        with self._lock:
            goal = self.get_goal(goal_id)
            target = float(data['target_amount'])
            current = min(goal.current_amount, target)
            updated = goal.copy(
                title=data['title'],
                description=data.get('description', ''),
                target_amount=target,
                current_amount=current,
                category=data.get('category', goal.category),
                target_date=data.get('target_date'),
                color=data.get('color', goal.color),
                icon=data.get('icon', goal.icon),
                is_completed=goal.is_completed or current >= target,
            )
            self._commit(goals=self._replace_goal(updated))
        self._announce_if_completed(goal, updated)
        return updated

    def delete_goal(self, goal_id: int) -> bool:
        """Remove a goal.  Its allocation entries stay in the ledger.

        Returns ``False`` (and writes nothing) when the goal does not exist.
        """
        with self._lock:
            remaining = [goal for goal in self._goals if goal.id != goal_id]
            if len(remaining) == len(self._goals):
                return False
            self._commit(goals=remaining)
            return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _replace_goal(self, updated: FinancialGoal) -> List[FinancialGoal]:
        return [updated if goal.id == updated.id else goal for goal in self._goals]

    def _commit(
        self,
        goals: Optional[List[FinancialGoal]] = None,
        entries: Optional[List[SavingsLedgerEntry]] = None,
        extra_writes: Optional[Mapping[str, List[Dict[str, Any]]]] = None,
    ) -> None:
        collections: Dict[str, List[Dict[str, Any]]] = dict(extra_writes or {})
        if goals is not None:
            collections[STORAGE_KEYS['GOALS']] = [goal.to_dict() for goal in goals]
        if entries is not None:
            collections[STORAGE_KEYS['SAVINGS']] = [entry.to_dict() for entry in entries]
        self.store.save_lists(collections)
        if goals is not None:
            self._goals = goals
        if entries is not None:
            self._entries = entries

    def _announce_if_completed(self, before: FinancialGoal, after: FinancialGoal) -> None:
        if before.is_completed or not after.is_completed:
            return
        logger.info("Goal %s (%s) completed", after.id, after.title)
        for listener in list(self._listeners):
            try:
                listener(after)
            except Exception:
                logger.exception("Goal completion listener failed for goal %s", after.id)


def _require_positive(amount: Any, field: str = 'amount') -> None:
    try:
        value = float(amount)
    except (TypeError, ValueError) as e:
        raise ValidationError("Amount must be a number", field=field) from e
    if not value > 0:
        raise ValidationError("Amount must be greater than zero", field=field)
