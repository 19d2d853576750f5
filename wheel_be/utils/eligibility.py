"""
Eligibility filter for the prize wheel.

Everything here is a pure function of the catalog, the budget ledger, the
fairness rules and the user's spin history, so it can be evaluated without a
database. Catalog entries, ledgers and spins only need the attributes of the
corresponding models.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Set

from wheel_be.exceptions import NoEligibleSlicesException

logger = logging.getLogger(__name__)

UNLIMITED_SPINS = -1
DEFAULT_SPIN_WINDOW = timedelta(hours=12)
DEFAULT_FREE_SPIN_WINDOW = timedelta(hours=24)
DEFAULT_PACE_THRESHOLD = 0.95


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class RateLimitStatus:
    allowed: bool
    limit: int
    window_spins: int
    reset_at: Optional[datetime]

    @property
    def spins_remaining(self) -> int:
        if self.limit == UNLIMITED_SPINS:
            return UNLIMITED_SPINS
        return max(0, self.limit - self.window_spins)


def check_rate_limit(user_spins: Iterable, rules, now: datetime,
                     window: timedelta = DEFAULT_SPIN_WINDOW) -> RateLimitStatus:
    """Count the user's regular spins in the trailing window.

    Spins paid for with a free-spin credit are not counted. ``reset_at`` is
    when the oldest counted spin leaves the window.
    """
    now = as_utc(now)
    cutoff = now - window
    counted = sorted(
        as_utc(spin.created_at) for spin in user_spins
        if not spin.used_bonus_spin and as_utc(spin.created_at) > cutoff
    )
    limit = rules.spins_per_window if rules is not None else UNLIMITED_SPINS
    reset_at = counted[0] + window if counted else None

    if limit == UNLIMITED_SPINS:
        return RateLimitStatus(allowed=True, limit=limit, window_spins=len(counted), reset_at=reset_at)

    return RateLimitStatus(
        allowed=len(counted) < limit,
        limit=limit,
        window_spins=len(counted),
        reset_at=reset_at,
    )


def is_budget_exhausted(ledger) -> bool:
    return ledger.budget_remaining <= 0


def target_average_per_spin(ledger) -> Optional[float]:
    """Budget per spin needed to land exactly on ``target_spins``; None outside auto mode."""
    if ledger.mode != 'auto' or not ledger.target_spins or ledger.target_spins <= 0:
        return None
    return ledger.total_budget / ledger.target_spins


def is_pace_constraint_active(ledger, threshold: float = DEFAULT_PACE_THRESHOLD) -> bool:
    average = target_average_per_spin(ledger)
    if average is None:
        return False
    if ledger.total_spins >= ledger.target_spins and ledger.budget_spent >= threshold * ledger.total_budget:
        return True
    return ledger.budget_spent + average > ledger.total_budget


def validate_catalog(catalog) -> list:
    """Return the enabled slices, raising if the catalog cannot guarantee an outcome."""
    enabled = [s for s in catalog if s.enabled]
    if len(enabled) < 2 or not any(s.cost == 0 for s in enabled):
        logger.error(
            "Wheel catalog integrity violation: %d enabled slices, zero-cost present=%s",
            len(enabled), any(s.cost == 0 for s in enabled)
        )
        raise NoEligibleSlicesException(details={})
    return enabled


def count_recent_free_spin_wins(user_spins: Iterable, now: datetime,
                                window: timedelta = DEFAULT_FREE_SPIN_WINDOW) -> int:
    cutoff = as_utc(now) - window
    return sum(
        1 for spin in user_spins
        if spin.slice_type == 'free_spin' and as_utc(spin.created_at) > cutoff
    )


def compute_eligible_slices(catalog, ledger, rules, user_spins, now: datetime, *,
                            bonus_spin: bool = False,
                            pace_threshold: float = DEFAULT_PACE_THRESHOLD,
                            free_spin_cap: int = 1,
                            free_spin_window: timedelta = DEFAULT_FREE_SPIN_WINDOW) -> Set[int]:
    """
    Return the positions of the slices this spin may land on.

    The rate-limit gate is checked separately by the caller. The result is
    never empty; NoEligibleSlicesException is raised instead.

    Args:
        catalog: Slices of the campaign, any order.
        ledger: The campaign's budget ledger.
        rules: Fairness rules, or None for defaults.
        user_spins: The requesting user's spins (at least the last 24h).
        now: Evaluation time.
        bonus_spin: True when this spin consumes a free-spin credit.
    """
    user_spins = list(user_spins)
    enabled = [s for s in catalog if s.enabled]

    zero_cost = [s for s in enabled if s.cost == 0]
    if is_budget_exhausted(ledger) or is_pace_constraint_active(ledger, pace_threshold):
        candidates = zero_cost
    else:
        candidates = [s for s in enabled if s.cost <= ledger.budget_remaining]
        if not candidates:
            candidates = zero_cost

    exclude_free_spin = count_recent_free_spin_wins(user_spins, now, free_spin_window) >= free_spin_cap
    if bonus_spin and (rules is None or rules.free_spin_cannot_chain):
        exclude_free_spin = True
    if exclude_free_spin:
        candidates = [s for s in candidates if s.type != 'free_spin']

    candidates = [s for s in candidates if s.max_wins is None or s.current_wins < s.max_wins]

    if not candidates:
        logger.error(
            "No eligible wheel slices: remaining=%s enabled=%d bonus_spin=%s",
            ledger.budget_remaining, len(enabled), bonus_spin
        )
        raise NoEligibleSlicesException()

    return {s.position for s in candidates}
