import logging
import random
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import current_app
from sqlalchemy import Float, cast, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from wheel_be.models import (
    db, WheelCampaign, WheelSlice, WheelBudget, WheelFairnessRules, WheelSpin, WheelBonusSpin
)
from wheel_be.exceptions import (
    BudgetRaceLostException, CampaignNotLiveException, InternalServerErrorException,
    NoEligibleSlicesException, RateLimitExceededException
)
from wheel_be.utils.eligibility import (
    as_utc, check_rate_limit, compute_eligible_slices, validate_catalog, UNLIMITED_SPINS
)
from wheel_be.utils.selector import ExpenseSnapshot, select_slice
from wheel_be.utils.security_logger import SecurityLogger

logger = logging.getLogger(__name__)

_campaign_locks = {}
_campaign_locks_guard = threading.Lock()


def campaign_lock(campaign_id: int) -> threading.Lock:
    """Process-wide lock serializing spins (and ledger admin writes) of one campaign."""
    with _campaign_locks_guard:
        lock = _campaign_locks.get(campaign_id)
        if lock is None:
            lock = _campaign_locks[campaign_id] = threading.Lock()
        return lock


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SpinOutcome:
    spin_id: int
    campaign_id: int
    user_id: int
    slice_position: int
    reward_type: str
    reward_label: str
    prize_value: Optional[str]
    color: Optional[str]
    cost: int
    used_bonus_spin: bool
    created_at: datetime

    def to_dict(self, include_cost=False):
        data = asdict(self)
        data['created_at'] = as_utc(self.created_at).isoformat()
        if not include_cost:
            data.pop('cost')
        return data


class WheelSpinService:
    """
    Runs a spin end to end: liveness, rate-limit gate, eligibility, selection
    and the atomic commit against the budget ledger.

    ``rng`` and ``clock`` are injectable so outcomes and windows can be pinned
    in tests. ``settings`` overrides values read from ``current_app.config``.
    """

    def __init__(self, rng=None, clock=None, settings=None):
        self.rng = rng or random.SystemRandom()
        self.clock = clock or utc_now
        self.settings = settings or {}

    def _setting(self, key, default):
        if key in self.settings:
            return self.settings[key]
        return current_app.config.get(key, default)

    @property
    def spin_window(self) -> timedelta:
        return timedelta(hours=self._setting('WHEEL_SPIN_WINDOW_HOURS', 12))

    @property
    def free_spin_window(self) -> timedelta:
        return timedelta(hours=self._setting('WHEEL_FREE_SPIN_WINDOW_HOURS', 24))

    # --- Campaign liveness ---

    @staticmethod
    def is_campaign_live(campaign: WheelCampaign, now: datetime) -> bool:
        if campaign.status != 'live':
            return False
        now = as_utc(now)
        if campaign.start_date is not None and now < as_utc(campaign.start_date):
            return False
        if campaign.end_date is not None and now > as_utc(campaign.end_date):
            return False
        return True

    def get_live_campaign(self, campaign_id: int = None, now: datetime = None) -> WheelCampaign:
        """Return the requested campaign, or the newest live one, raising if it cannot take spins."""
        now = now or self.clock()
        if not self._setting('WHEEL_ENABLED', True):
            raise CampaignNotLiveException(details={'reason': 'disabled'})

        if campaign_id is not None:
            campaign = db.session.get(WheelCampaign, campaign_id)
        else:
            campaign = (WheelCampaign.query
                        .filter_by(status='live')
                        .order_by(WheelCampaign.created_at.desc(), WheelCampaign.id.desc())
                        .first())

        if campaign is None or not self.is_campaign_live(campaign, now):
            raise CampaignNotLiveException(details={'campaign_id': campaign_id})
        return campaign

    # --- Reads ---

    def _load_catalog(self, campaign_id):
        return WheelSlice.query.filter_by(campaign_id=campaign_id).order_by(WheelSlice.position).all()

    def _load_user_history(self, user_id, campaign_id, now):
        cutoff = as_utc(now) - max(self.spin_window, self.free_spin_window)
        return WheelSpin.query.filter(
            WheelSpin.user_id == user_id,
            WheelSpin.campaign_id == campaign_id,
            WheelSpin.created_at > cutoff
        ).all()

    def get_bonus_credits(self, user_id, campaign_id) -> int:
        credits = db.session.scalar(
            select(WheelBonusSpin.credits)
            .where(WheelBonusSpin.campaign_id == campaign_id, WheelBonusSpin.user_id == user_id)
        )
        return credits or 0

    def expense_snapshot(self, ledger: WheelBudget, now: datetime) -> ExpenseSnapshot:
        day_start = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
        spent_today = db.session.scalar(
            select(func.coalesce(func.sum(WheelSpin.cost), 0))
            .where(WheelSpin.campaign_id == ledger.campaign_id, WheelSpin.created_at >= day_start)
        )
        recent_costs = []
        if ledger.rolling_spin_window_size:
            recent_costs = db.session.scalars(
                select(WheelSpin.cost)
                .where(WheelSpin.campaign_id == ledger.campaign_id)
                .order_by(WheelSpin.created_at.desc(), WheelSpin.id.desc())
                .limit(ledger.rolling_spin_window_size)
            ).all()
        return ExpenseSnapshot(
            spent_today=int(spent_today or 0),
            recent_spend=sum(recent_costs),
            recent_count=len(recent_costs),
        )

    # --- Spin ---

    def spin(self, user_id: int, campaign_id: int = None) -> SpinOutcome:
        campaign_id = self.get_live_campaign(campaign_id).id
        max_retries = self._setting('WHEEL_COMMIT_MAX_RETRIES', 3)
        # Hand the pooled connection back before queueing on the lock.
        db.session.rollback()

        with campaign_lock(campaign_id):
            for attempt in range(1, max_retries + 1):
                try:
                    return self._attempt_spin(user_id, campaign_id)
                except BudgetRaceLostException:
                    db.session.rollback()
                    logger.warning(
                        f"Budget race lost for user {user_id} on campaign {campaign_id} "
                        f"(attempt {attempt}/{max_retries})"
                    )

        SecurityLogger.log_wheel_event('spin_failed', user_id, campaign_id,
                                       details={'reason': 'budget_race_retries_exhausted'})
        raise InternalServerErrorException(
            status_message="The spin could not be completed. Please try again.",
            details={'attempts': max_retries}
        )

    def _attempt_spin(self, user_id: int, campaign_id: int) -> SpinOutcome:
        # Drop identity-map state so a retry sees the ledger as committed by others.
        db.session.expire_all()
        now = self.clock()
        self.get_live_campaign(campaign_id, now)

        ledger = WheelBudget.query.filter_by(campaign_id=campaign_id).first()
        if ledger is None:
            logger.error(f"Campaign {campaign_id} is live without a budget ledger")
            raise NoEligibleSlicesException()
        rules = WheelFairnessRules.query.filter_by(campaign_id=campaign_id).first()
        catalog = validate_catalog(self._load_catalog(campaign_id))
        history = self._load_user_history(user_id, campaign_id, now)

        rate = check_rate_limit(history, rules, now, self.spin_window)
        bonus_spin = False
        if not rate.allowed:
            if self.get_bonus_credits(user_id, campaign_id) > 0:
                bonus_spin = True
            else:
                SecurityLogger.log_wheel_event(
                    'spin_rejected', user_id, campaign_id,
                    details={'reason': 'rate_limited', 'window_spins': rate.window_spins,
                             'reset_at': rate.reset_at}
                )
                raise RateLimitExceededException(reset_at=rate.reset_at)

        eligible = compute_eligible_slices(
            catalog, ledger, rules, history, now,
            bonus_spin=bonus_spin,
            pace_threshold=self._setting('WHEEL_PACE_THRESHOLD', 0.95),
            free_spin_cap=self._setting('WHEEL_FREE_SPIN_CAP', 1),
            free_spin_window=self.free_spin_window,
        )
        expense = self.expense_snapshot(ledger, now) if ledger.mode == 'target_expense_rate' else None
        position = select_slice(
            eligible, catalog, ledger, self.rng,
            expense=expense,
            expensive_override_probability=self._setting('WHEEL_EXPENSIVE_OVERRIDE_PROBABILITY', 0.3),
        )
        chosen = next(s for s in catalog if s.position == position)

        spin = self.commit_spin(user_id, campaign_id, chosen, now, used_bonus_spin=bonus_spin)
        return SpinOutcome(
            spin_id=spin.id,
            campaign_id=campaign_id,
            user_id=user_id,
            slice_position=chosen.position,
            reward_type=chosen.type,
            reward_label=chosen.label,
            prize_value=chosen.prize_value,
            color=chosen.color,
            cost=spin.cost,
            used_bonus_spin=bonus_spin,
            created_at=spin.created_at,
        )

    def commit_spin(self, user_id: int, campaign_id: int, wheel_slice: WheelSlice,
                    now: datetime, used_bonus_spin: bool = False) -> WheelSpin:
        """
        Apply one spin to the ledger and append its record in a single transaction.

        The ledger row is updated only while ``budget_remaining >= cost`` still
        holds; otherwise BudgetRaceLostException is raised and nothing is written.
        """
        cost = wheel_slice.cost
        spent_before = db.session.scalar(
            select(WheelBudget.budget_spent).where(WheelBudget.campaign_id == campaign_id)
        )
        try:
            result = db.session.execute(
                update(WheelBudget)
                .where(WheelBudget.campaign_id == campaign_id, WheelBudget.budget_remaining >= cost)
                .values(
                    budget_remaining=WheelBudget.budget_remaining - cost,
                    budget_spent=WheelBudget.budget_spent + cost,
                    total_spins=WheelBudget.total_spins + 1,
                    average_payout_per_spin=(
                        cast(WheelBudget.budget_spent + cost, Float) / (WheelBudget.total_spins + 1)
                    ),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise BudgetRaceLostException(details={'campaign_id': campaign_id, 'cost': cost})

            slice_update = update(WheelSlice).where(WheelSlice.id == wheel_slice.id)
            if wheel_slice.max_wins is not None:
                slice_update = slice_update.where(WheelSlice.current_wins < WheelSlice.max_wins)
            result = db.session.execute(
                slice_update.values(current_wins=WheelSlice.current_wins + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise BudgetRaceLostException(details={'slice_position': wheel_slice.position})

            if used_bonus_spin:
                result = db.session.execute(
                    update(WheelBonusSpin)
                    .where(WheelBonusSpin.campaign_id == campaign_id,
                           WheelBonusSpin.user_id == user_id,
                           WheelBonusSpin.credits > 0)
                    .values(credits=WheelBonusSpin.credits - 1, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise BudgetRaceLostException(details={'reason': 'bonus_credit_consumed'})

            if wheel_slice.type == 'free_spin':
                self._grant_bonus_credit(user_id, campaign_id, now)

            spin = WheelSpin(
                campaign_id=campaign_id,
                slice_id=wheel_slice.id,
                slice_position=wheel_slice.position,
                slice_type=wheel_slice.type,
                reward_label=wheel_slice.label,
                prize_value=wheel_slice.prize_value,
                user_id=user_id,
                cost=cost,
                used_bonus_spin=used_bonus_spin,
                created_at=now,
            )
            db.session.add(spin)
            db.session.commit()
        except (BudgetRaceLostException, SQLAlchemyError):
            db.session.rollback()
            raise

        ledger = WheelBudget.query.filter_by(campaign_id=campaign_id).first()
        SecurityLogger.log_wheel_event(
            'spin_committed', user_id, campaign_id,
            slice_position=spin.slice_position, cost=cost, used_bonus_spin=used_bonus_spin,
            details={'spin_id': spin.id, 'reward_type': spin.slice_type}
        )
        SecurityLogger.log_ledger_event(
            'spin_commit', campaign_id, amount=cost,
            spent_before=spent_before, spent_after=ledger.budget_spent,
            remaining_after=ledger.budget_remaining, total_spins=ledger.total_spins,
            details={'spin_id': spin.id}
        )
        return spin

    def _grant_bonus_credit(self, user_id, campaign_id, now):
        result = db.session.execute(
            update(WheelBonusSpin)
            .where(WheelBonusSpin.campaign_id == campaign_id, WheelBonusSpin.user_id == user_id)
            .values(credits=WheelBonusSpin.credits + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.add(WheelBonusSpin(campaign_id=campaign_id, user_id=user_id, credits=1, updated_at=now))

    # --- Player views ---

    def get_spin_status(self, user_id: int, campaign_id: int = None) -> dict:
        now = self.clock()
        try:
            campaign = self.get_live_campaign(campaign_id, now)
        except CampaignNotLiveException:
            return {
                'wheel_enabled': False,
                'campaign_id': campaign_id,
                'spins_remaining': 0,
                'bonus_spins': 0,
                'total_available': 0,
                'spins_per_window': 0,
                'window_spins': 0,
                'next_reset_time': None,
            }

        rules = WheelFairnessRules.query.filter_by(campaign_id=campaign.id).first()
        history = self._load_user_history(user_id, campaign.id, now)
        rate = check_rate_limit(history, rules, now, self.spin_window)
        bonus_spins = self.get_bonus_credits(user_id, campaign.id)

        if rate.limit == UNLIMITED_SPINS:
            total_available = UNLIMITED_SPINS
        else:
            total_available = rate.spins_remaining + bonus_spins

        return {
            'wheel_enabled': True,
            'campaign_id': campaign.id,
            'spins_remaining': rate.spins_remaining,
            'bonus_spins': bonus_spins,
            'total_available': total_available,
            'spins_per_window': rate.limit,
            'window_spins': rate.window_spins,
            'next_reset_time': rate.reset_at.isoformat() if rate.reset_at else None,
        }

    def get_user_spins(self, user_id: int, limit: int = None):
        limit = limit or self._setting('WHEEL_USER_HISTORY_LIMIT', 50)
        return (WheelSpin.query
                .filter_by(user_id=user_id)
                .order_by(WheelSpin.created_at.desc(), WheelSpin.id.desc())
                .limit(limit)
                .all())
