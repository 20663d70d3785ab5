import json

import pytest

from budget_tracker.errors import InsufficientBalanceError, NotFoundError, PersistenceError, ValidationError
from budget_tracker.ledger import ALLOCATION_DESCRIPTION, GoalLedger
from budget_tracker.storage import STORAGE_KEYS, MemoryStore


class FlakyStore(MemoryStore):
    """Memory store whose writes can be made to fail."""

    fail = False

    def set_many(self, values):
        if self.fail:
            raise PersistenceError("disk full")
        super().set_many(values)


def make_ledger(deposits=100.0, store=None):
    funds = {'total': deposits}
    ledger = GoalLedger(store or MemoryStore(), deposits_provider=lambda: funds['total'])
    ledger.load()
    return ledger, funds


def add_goal(ledger, target=80.0, title='Bike'):
    return ledger.create_goal({'title': title, 'target_amount': target})


def test_load_seeds_default_goals_once():
    store = MemoryStore()
    ledger, _ = make_ledger(store=store)
    assert [g.title for g in ledger.goals] == ['Emergency Fund', 'Vacation Fund']
    ledger.delete_goal(1)
    ledger.delete_goal(2)

    reloaded, _ = make_ledger(store=store)
    assert reloaded.goals == []


def test_scenario_b_allocation_completes_goal_once():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 80.0)
    completed = []
    ledger.add_completion_listener(completed.append)

    updated = ledger.allocate_to_goal(goal.id, 80.0)

    assert ledger.wallet_balance() == 20.0
    assert updated.current_amount == 80.0
    assert updated.is_completed
    assert [g.id for g in completed] == [goal.id]


def test_scenario_c_insufficient_balance_leaves_state_untouched():
    ledger, _ = make_ledger(100.0)
    first = add_goal(ledger, 80.0)
    second = add_goal(ledger, 500.0, title='Laptop')
    ledger.allocate_to_goal(first.id, 80.0)
    goals_before = ledger.goals
    entries_before = ledger.entries

    with pytest.raises(InsufficientBalanceError) as excinfo:
        ledger.allocate_to_goal(second.id, 50.0)

    assert excinfo.value.shortfall == 30.0
    assert excinfo.value.required_amount == 50.0
    assert excinfo.value.current_balance == 20.0
    assert ledger.goals == goals_before
    assert ledger.entries == entries_before
    assert ledger.wallet_balance() == 20.0


def test_allocation_conservation():
    ledger, _ = make_ledger(300.0)
    goal = add_goal(ledger, 250.0)
    allocated_before = ledger.total_allocated()

    updated = ledger.allocate_to_goal(goal.id, 75.5)

    assert ledger.total_allocated() == allocated_before + 75.5
    assert updated.current_amount == goal.current_amount + 75.5
    entry = ledger.entries[-1]
    assert entry.allocated_to_goal == goal.id
    assert entry.description == ALLOCATION_DESCRIPTION


def test_allocation_clamps_goal_at_target():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 60.0)
    updated = ledger.allocate_to_goal(goal.id, 90.0)
    assert updated.current_amount == 60.0
    assert ledger.total_allocated() == 90.0
    assert ledger.wallet_balance() == 10.0


def test_wallet_never_negative_across_sequence():
    ledger, funds = make_ledger(0.0)
    goal = add_goal(ledger, 1000.0)
    for deposit, allocation in [(50.0, 30.0), (10.0, 40.0), (0.0, 5.0), (100.0, 100.0)]:
        funds['total'] += deposit
        try:
            ledger.allocate_to_goal(goal.id, allocation)
        except InsufficientBalanceError:
            pass
        assert ledger.wallet_balance() >= 0


@pytest.mark.parametrize('amount', [0, -5, 'abc'])
def test_allocation_rejects_non_positive_amounts(amount):
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger)
    with pytest.raises(ValidationError):
        ledger.allocate_to_goal(goal.id, amount)


def test_allocation_to_unknown_goal_raises_not_found():
    ledger, _ = make_ledger(100.0)
    with pytest.raises(NotFoundError):
        ledger.allocate_to_goal(999, 10.0)
    assert ledger.entries == []


def test_mark_complete_charges_wallet_for_shortfall():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 80.0)
    ledger.allocate_to_goal(goal.id, 30.0)

    completed = ledger.mark_goal_complete(goal.id)

    assert completed.is_completed
    assert completed.current_amount == 80.0
    assert ledger.wallet_balance() == 20.0


def test_mark_complete_rejected_when_wallet_short():
    ledger, _ = make_ledger(10.0)
    goal = add_goal(ledger, 80.0)
    with pytest.raises(InsufficientBalanceError) as excinfo:
        ledger.mark_goal_complete(goal.id)
    assert excinfo.value.shortfall == 70.0
    assert not ledger.get_goal(goal.id).is_completed


def test_mark_complete_is_idempotent_and_fires_once():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 50.0)
    completed = []
    ledger.add_completion_listener(completed.append)

    ledger.mark_goal_complete(goal.id)
    ledger.mark_goal_complete(goal.id)
    ledger.allocate_to_goal(goal.id, 10.0)

    assert len(completed) == 1
    assert ledger.get_goal(goal.id).is_completed


def test_completion_listener_errors_do_not_break_allocation():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 20.0)

    def broken(_goal):
        raise RuntimeError("boom")

    ledger.add_completion_listener(broken)
    assert ledger.allocate_to_goal(goal.id, 20.0).is_completed


def test_update_goal_never_revokes_completion():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 50.0)
    ledger.allocate_to_goal(goal.id, 50.0)

    updated = ledger.update_goal(goal.id, {'title': 'Bigger bike', 'target_amount': 400.0})

    assert updated.is_completed
    assert updated.title == 'Bigger bike'
    assert updated.current_amount == 50.0


def test_update_goal_lowering_target_completes_and_clamps():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 200.0)
    ledger.allocate_to_goal(goal.id, 60.0)
    completed = []
    ledger.add_completion_listener(completed.append)

    updated = ledger.update_goal(goal.id, {'title': 'Bike', 'target_amount': 40.0})

    assert updated.current_amount == 40.0
    assert updated.is_completed
    assert len(completed) == 1


def test_delete_goal_keeps_allocation_history():
    ledger, _ = make_ledger(100.0)
    goal = add_goal(ledger, 80.0)
    ledger.allocate_to_goal(goal.id, 40.0)

    assert ledger.delete_goal(goal.id) is True
    assert ledger.delete_goal(goal.id) is False
    assert any(e.allocated_to_goal == goal.id for e in ledger.entries)
    assert ledger.wallet_balance() == 60.0


def test_failed_write_does_not_change_memory():
    store = FlakyStore()
    ledger, _ = make_ledger(100.0, store=store)
    goal = add_goal(ledger, 80.0)
    store.fail = True

    with pytest.raises(PersistenceError):
        ledger.allocate_to_goal(goal.id, 40.0)

    assert ledger.get_goal(goal.id).current_amount == 0.0
    assert ledger.entries == []
    assert ledger.wallet_balance() == 100.0


def test_allocation_persists_goal_and_entry_together():
    store = MemoryStore()
    ledger, _ = make_ledger(100.0, store=store)
    goal = add_goal(ledger, 80.0)
    ledger.allocate_to_goal(goal.id, 25.0)

    goals = json.loads(store.get(STORAGE_KEYS['GOALS']))
    entries = json.loads(store.get(STORAGE_KEYS['SAVINGS']))
    saved = next(g for g in goals if g['id'] == goal.id)
    assert saved['currentAmount'] == 25.0
    assert entries[-1]['allocatedToGoal'] == goal.id


def test_record_savings_deposit_writes_extra_collections():
    store = MemoryStore()
    ledger, _ = make_ledger(0.0, store=store)
    ledger.record_savings_deposit(100.0, 'paycheck', extra_writes={'expenses': [{'id': 1}]})
    assert json.loads(store.get('expenses')) == [{'id': 1}]
    assert not ledger.entries[-1].is_allocation
