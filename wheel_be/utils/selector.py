"""
Cheap-biased weighted selection over the eligible slices.

Eligible slices are ranked by ascending cost (ties broken by position) and the
slice at rank ``i`` of ``N`` gets weight ``N - i``, so the cheapest outcome is
always the most likely one. Budget-mode overrides narrow the candidate list
before the draw; they never change the weighting shape.
"""
import random
from dataclasses import dataclass

from wheel_be.exceptions import NoEligibleSlicesException
from wheel_be.utils.eligibility import target_average_per_spin


@dataclass
class ExpenseSnapshot:
    """Recent spend used by ``target_expense_rate`` mode."""
    spent_today: int = 0
    recent_spend: int = 0
    recent_count: int = 0


def is_behind_pace(ledger) -> bool:
    average = target_average_per_spin(ledger)
    if average is None:
        return False
    return ledger.budget_spent < ledger.total_spins * average


def is_expense_cap_reached(ledger, expense: ExpenseSnapshot) -> bool:
    if ledger.mode != 'target_expense_rate' or expense is None:
        return False
    if ledger.target_expense_per_day is not None and expense.spent_today >= ledger.target_expense_per_day:
        return True
    window = ledger.rolling_spin_window_size
    if (ledger.target_expense_per_rolling_spins is not None and window
            and expense.recent_count >= window
            and expense.recent_spend >= ledger.target_expense_per_rolling_spins):
        return True
    return False


def apply_pacing_override(ranked, ledger, rng, expense=None, expensive_override_probability=0.3):
    if ledger.mode == 'auto' and is_behind_pace(ledger):
        if rng.random() < expensive_override_probability:
            average = target_average_per_spin(ledger)
            expensive = [s for s in ranked if s.cost > average]
            if expensive:
                return expensive
    elif is_expense_cap_reached(ledger, expense):
        free = [s for s in ranked if s.cost == 0]
        if free:
            return free
    return ranked


def weighted_pick(ranked, rng):
    n = len(ranked)
    weights = [n - rank for rank in range(n)]
    r = rng.random() * sum(weights)
    for wheel_slice, weight in zip(ranked, weights):
        r -= weight
        if r < 0:
            return wheel_slice
    return ranked[-1]


def select_slice(eligible, catalog, ledger, rng=None, *, expense=None, expensive_override_probability=0.3):
    """
    Pick one slice position out of ``eligible``.

    Deterministic for a given ``rng`` (anything with ``random()``); defaults to
    a fresh ``random.SystemRandom``.
    """
    if not eligible:
        raise NoEligibleSlicesException()
    rng = rng or random.SystemRandom()

    ranked = sorted((s for s in catalog if s.position in eligible), key=lambda s: (s.cost, s.position))
    if not ranked:
        raise NoEligibleSlicesException()

    ranked = apply_pacing_override(
        ranked, ledger, rng,
        expense=expense,
        expensive_override_probability=expensive_override_probability,
    )
    return weighted_pick(ranked, rng).position
