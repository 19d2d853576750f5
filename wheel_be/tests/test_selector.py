import random
from collections import Counter
from types import SimpleNamespace

import pytest

from wheel_be.exceptions import NoEligibleSlicesException
from wheel_be.tests.helpers import FixedRandom
from wheel_be.utils.selector import (
    ExpenseSnapshot,
    is_behind_pace,
    is_expense_cap_reached,
    select_slice,
    weighted_pick,
)


def make_slice(position, cost):
    return SimpleNamespace(position=position, cost=cost)


def make_ledger(mode='manual', total=100, spent=0, total_spins=0, target_spins=None, **extra):
    values = dict(
        mode=mode, total_budget=total, budget_spent=spent, budget_remaining=total - spent,
        total_spins=total_spins, target_spins=target_spins,
        target_expense_per_day=None, target_expense_per_rolling_spins=None, rolling_spin_window_size=None,
    )
    values.update(extra)
    return SimpleNamespace(**values)


CATALOG = [make_slice(0, 20), make_slice(1, 0), make_slice(2, 10)]


def test_weighted_pick_boundaries():
    ranked = [make_slice(0, 0), make_slice(1, 5), make_slice(2, 10)]
    # weights 3, 2, 1 over a total of 6
    assert weighted_pick(ranked, FixedRandom(0.0)).position == 0
    assert weighted_pick(ranked, FixedRandom(0.49)).position == 0
    assert weighted_pick(ranked, FixedRandom(0.5)).position == 1
    assert weighted_pick(ranked, FixedRandom(0.8)).position == 1
    assert weighted_pick(ranked, FixedRandom(0.999)).position == 2


def test_ranking_is_by_cost_then_position():
    catalog = [make_slice(0, 10), make_slice(1, 0), make_slice(2, 0)]
    # lowest draw lands on the cheapest slice with the lowest position
    assert select_slice({0, 1, 2}, catalog, make_ledger(), FixedRandom(0.0)) == 1
    assert select_slice({0, 1, 2}, catalog, make_ledger(), FixedRandom(0.999)) == 0


def test_only_eligible_positions_are_returned():
    for value in (0.0, 0.3, 0.6, 0.999):
        assert select_slice({1, 2}, CATALOG, make_ledger(), FixedRandom(value)) in {1, 2}


def test_single_eligible_slice_is_always_chosen():
    assert select_slice({0}, CATALOG, make_ledger(), FixedRandom(0.7)) == 0


def test_empty_eligible_set_raises():
    with pytest.raises(NoEligibleSlicesException):
        select_slice(set(), CATALOG, make_ledger(), FixedRandom(0.5))


def test_distribution_favours_cheap_slices():
    rng = random.Random(1234)
    draws = 10000
    counts = Counter(select_slice({0, 1, 2}, CATALOG, make_ledger(), rng) for _ in range(draws))
    assert counts[1] / draws == pytest.approx(3 / 6, abs=0.03)
    assert counts[2] / draws == pytest.approx(2 / 6, abs=0.03)
    assert counts[0] / draws == pytest.approx(1 / 6, abs=0.03)
    assert counts[1] > counts[2] > counts[0]


def test_default_rng_is_used_when_none_given():
    assert select_slice({0, 1, 2}, CATALOG, make_ledger()) in {0, 1, 2}


class TestAutoModeOverride:

    def behind_ledger(self):
        return make_ledger(mode='auto', total=100, spent=0, total_spins=5, target_spins=10)

    def test_is_behind_pace(self):
        assert is_behind_pace(self.behind_ledger())
        assert not is_behind_pace(make_ledger(mode='auto', spent=60, total_spins=5, target_spins=10))
        assert not is_behind_pace(make_ledger(mode='manual', total_spins=5))

    def test_override_restricts_to_expensive_slices(self):
        # 0.1 < 0.3 triggers the override; only cost > 10 survives
        assert select_slice({0, 1, 2}, CATALOG, self.behind_ledger(), FixedRandom(0.1)) == 0

    def test_no_override_above_probability(self):
        assert select_slice({0, 1, 2}, CATALOG, self.behind_ledger(), FixedRandom(0.31)) == 1

    def test_override_probability_is_configurable(self):
        position = select_slice({0, 1, 2}, CATALOG, self.behind_ledger(), FixedRandom(0.31),
                                expensive_override_probability=0.5)
        assert position == 0

    def test_override_ignored_when_nothing_expensive_is_eligible(self):
        assert select_slice({1, 2}, CATALOG, self.behind_ledger(), FixedRandom(0.1)) == 1


class TestExpenseRateMode:

    def ledger(self, **extra):
        return make_ledger(mode='target_expense_rate', total=1000, **extra)

    def test_daily_cap_forces_zero_cost(self):
        ledger = self.ledger(target_expense_per_day=50)
        expense = ExpenseSnapshot(spent_today=50)
        assert is_expense_cap_reached(ledger, expense)
        assert select_slice({0, 1, 2}, CATALOG, ledger, FixedRandom(0.999), expense=expense) == 1

    def test_under_daily_cap(self):
        ledger = self.ledger(target_expense_per_day=50)
        assert not is_expense_cap_reached(ledger, ExpenseSnapshot(spent_today=49))

    def test_rolling_cap_needs_a_full_window(self):
        ledger = self.ledger(target_expense_per_rolling_spins=30, rolling_spin_window_size=5)
        assert not is_expense_cap_reached(ledger, ExpenseSnapshot(recent_spend=40, recent_count=4))
        assert is_expense_cap_reached(ledger, ExpenseSnapshot(recent_spend=30, recent_count=5))

    def test_other_modes_ignore_expense(self):
        ledger = make_ledger(mode='manual', target_expense_per_day=1)
        assert not is_expense_cap_reached(ledger, ExpenseSnapshot(spent_today=100))
