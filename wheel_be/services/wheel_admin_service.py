import logging
from datetime import datetime

from sqlalchemy import func, select, update

from wheel_be.models import (
    db, WheelCampaign, WheelBudget, WheelFairnessRules, WheelSpin, WheelBonusSpin,
    BUDGET_MODES, CAMPAIGN_STATUSES, SLICE_TYPES
)
from wheel_be.exceptions import InvalidBudgetConfigException, NotFoundException, ValidationException
from wheel_be.segments import build_slices
from wheel_be.services.wheel_spin_service import campaign_lock
from wheel_be.utils.eligibility import as_utc, validate_catalog
from wheel_be.utils.security_logger import SecurityLogger

logger = logging.getLogger(__name__)

BUDGET_CONFIG_FIELDS = (
    'mode', 'target_spins', 'target_expense_per_day',
    'target_expense_per_rolling_spins', 'rolling_spin_window_size'
)


class WheelAdminService:
    """Back-office operations on a campaign's ledger, rules, credits and audit trail."""

    def get_campaign(self, campaign_id: int) -> WheelCampaign:
        campaign = db.session.get(WheelCampaign, campaign_id)
        if campaign is None:
            raise NotFoundException(f"Wheel campaign {campaign_id} not found.")
        return campaign

    def get_budget(self, campaign_id: int) -> WheelBudget:
        self.get_campaign(campaign_id)
        budget = WheelBudget.query.filter_by(campaign_id=campaign_id).first()
        if budget is None:
            raise NotFoundException(f"Campaign {campaign_id} has no budget ledger.")
        return budget

    def create_campaign(self, name: str, total_budget: int, mode: str = 'auto', target_spins: int = None,
                        segments=None, status: str = 'draft', spins_per_window: int = 1, **budget_config):
        """Create a campaign with its catalog, ledger and fairness rules in one transaction."""
        if mode not in BUDGET_MODES:
            raise ValidationException(f"Unknown budget mode '{mode}'.")
        if status not in CAMPAIGN_STATUSES:
            raise ValidationException(f"Unknown campaign status '{status}'.")
        if total_budget < 0:
            raise InvalidBudgetConfigException("Total budget cannot be negative.")
        unknown_types = sorted({s['type'] for s in segments or () if s['type'] not in SLICE_TYPES})
        if unknown_types:
            raise ValidationException(f"Unknown slice types: {', '.join(unknown_types)}.",
                                      details={'allowed': list(SLICE_TYPES)})

        campaign = WheelCampaign(name=name, status=status)
        db.session.add(campaign)
        db.session.flush()

        slices = build_slices(campaign.id, segments)
        validate_catalog(slices)
        db.session.add_all(slices)

        budget = WheelBudget(
            campaign_id=campaign.id,
            mode=mode,
            total_budget=total_budget,
            budget_spent=0,
            budget_remaining=total_budget,
            total_spins=0,
            average_payout_per_spin=0.0,
            target_spins=target_spins,
            target_expense_per_day=budget_config.get('target_expense_per_day'),
            target_expense_per_rolling_spins=budget_config.get('target_expense_per_rolling_spins'),
            rolling_spin_window_size=budget_config.get('rolling_spin_window_size'),
        )
        self._check_mode_parameters(budget)
        db.session.add(budget)
        db.session.add(WheelFairnessRules(campaign_id=campaign.id, spins_per_window=spins_per_window))
        db.session.commit()

        logger.info(f"Created wheel campaign {campaign.id} '{name}' with {len(slices)} slices, budget {total_budget}")
        return campaign

    @staticmethod
    def _check_mode_parameters(budget: WheelBudget):
        if budget.mode == 'auto' and not (budget.target_spins and budget.target_spins > 0):
            raise InvalidBudgetConfigException("Auto mode requires a positive target_spins.")
        if budget.mode == 'target_expense_rate':
            has_daily = budget.target_expense_per_day is not None
            has_rolling = (budget.target_expense_per_rolling_spins is not None
                           and bool(budget.rolling_spin_window_size))
            if not (has_daily or has_rolling):
                raise InvalidBudgetConfigException(
                    "target_expense_rate mode requires target_expense_per_day or "
                    "target_expense_per_rolling_spins with rolling_spin_window_size."
                )

    def update_budget(self, campaign_id: int, data: dict) -> WheelBudget:
        """
        Change the mode parameters and/or the total budget.

        Spent is never touched; a new total moves ``budget_remaining`` and is
        refused when it would fall below what has already been spent.
        """
        self.get_campaign(campaign_id)
        with campaign_lock(campaign_id):
            budget = self.get_budget(campaign_id)
            before = {'total_budget': budget.total_budget, 'mode': budget.mode}

            try:
                for field in BUDGET_CONFIG_FIELDS:
                    if field in data:
                        setattr(budget, field, data[field])
                self._check_mode_parameters(budget)

                if 'total_budget' in data:
                    new_total = data['total_budget']
                    result = db.session.execute(
                        update(WheelBudget)
                        .where(WheelBudget.campaign_id == campaign_id, WheelBudget.budget_spent <= new_total)
                        .values(total_budget=new_total, budget_remaining=new_total - WheelBudget.budget_spent)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        raise InvalidBudgetConfigException(
                            "Total budget cannot be lower than the amount already spent.",
                            details={'requested_total': new_total}
                        )
                db.session.commit()
            except InvalidBudgetConfigException:
                db.session.rollback()
                raise

        budget = self.get_budget(campaign_id)
        SecurityLogger.log_admin_event(
            'budget_updated', campaign_id=campaign_id, action='update_budget',
            details={'before': before, 'changes': data}
        )
        return budget

    def reset_budget(self, campaign_id: int) -> WheelBudget:
        self.get_campaign(campaign_id)
        with campaign_lock(campaign_id):
            budget = self.get_budget(campaign_id)
            spent_before = budget.budget_spent
            db.session.execute(
                update(WheelBudget)
                .where(WheelBudget.campaign_id == campaign_id)
                .values(
                    budget_spent=0,
                    budget_remaining=WheelBudget.total_budget,
                    total_spins=0,
                    average_payout_per_spin=0.0,
                )
                .execution_options(synchronize_session=False)
            )
            db.session.commit()

        budget = self.get_budget(campaign_id)
        SecurityLogger.log_ledger_event(
            'budget_reset', campaign_id, spent_before=spent_before, spent_after=0,
            remaining_after=budget.budget_remaining, total_spins=0
        )
        SecurityLogger.log_admin_event('budget_reset', campaign_id=campaign_id, action='reset_budget')
        return budget

    def get_fairness_rules(self, campaign_id: int) -> WheelFairnessRules:
        self.get_campaign(campaign_id)
        rules = WheelFairnessRules.query.filter_by(campaign_id=campaign_id).first()
        if rules is None:
            rules = WheelFairnessRules(campaign_id=campaign_id)
            db.session.add(rules)
            db.session.commit()
        return rules

    def update_fairness_rules(self, campaign_id: int, data: dict) -> WheelFairnessRules:
        rules = self.get_fairness_rules(campaign_id)
        for field in ('spins_per_window', 'free_spin_cannot_chain'):
            if field in data:
                setattr(rules, field, data[field])
        db.session.commit()
        SecurityLogger.log_admin_event(
            'fairness_updated', campaign_id=campaign_id, action='update_fairness_rules', details=data
        )
        return rules

    def set_campaign_status(self, campaign_id: int, status: str) -> WheelCampaign:
        if status not in CAMPAIGN_STATUSES:
            raise ValidationException(f"Unknown campaign status '{status}'.")
        campaign = self.get_campaign(campaign_id)
        previous = campaign.status
        campaign.status = status
        db.session.commit()
        SecurityLogger.log_admin_event(
            'campaign_status_changed', campaign_id=campaign_id, action='set_status',
            details={'from': previous, 'to': status}
        )
        return campaign

    def list_spins(self, campaign_id: int, page: int = 1, per_page: int = 20,
                   user_id: int = None, start_date: datetime = None, end_date: datetime = None):
        self.get_campaign(campaign_id)
        stmt = select(WheelSpin).where(WheelSpin.campaign_id == campaign_id)
        if user_id is not None:
            stmt = stmt.where(WheelSpin.user_id == user_id)
        if start_date is not None:
            stmt = stmt.where(WheelSpin.created_at >= as_utc(start_date))
        if end_date is not None:
            stmt = stmt.where(WheelSpin.created_at <= as_utc(end_date))
        stmt = stmt.order_by(WheelSpin.created_at.desc(), WheelSpin.id.desc())
        return db.paginate(stmt, page=page, per_page=min(per_page, 100), error_out=False)

    def get_stats(self, campaign_id: int) -> dict:
        budget = self.get_budget(campaign_id)
        base = select(func.count(WheelSpin.id)).where(WheelSpin.campaign_id == campaign_id)
        total_spins = db.session.scalar(base)
        bonus_spins_used = db.session.scalar(base.where(WheelSpin.used_bonus_spin.is_(True)))
        unique_users = db.session.scalar(
            select(func.count(func.distinct(WheelSpin.user_id))).where(WheelSpin.campaign_id == campaign_id)
        )
        rows = db.session.execute(
            select(WheelSpin.slice_type, WheelSpin.reward_label,
                   func.count(WheelSpin.id), func.coalesce(func.sum(WheelSpin.cost), 0))
            .where(WheelSpin.campaign_id == campaign_id)
            .group_by(WheelSpin.slice_type, WheelSpin.reward_label)
            .order_by(func.count(WheelSpin.id).desc())
        ).all()

        return {
            'campaign_id': campaign_id,
            'total_spins': total_spins,
            'unique_users': unique_users,
            'bonus_spins_used': bonus_spins_used,
            'total_cost': budget.budget_spent,
            'budget_remaining': budget.budget_remaining,
            'reward_breakdown': [
                {'reward_type': reward_type, 'reward_label': label, 'count': count, 'total_cost': int(cost)}
                for reward_type, label, count, cost in rows
            ],
        }

    def set_bonus_spins(self, campaign_id: int, user_id: int, credits: int) -> WheelBonusSpin:
        if credits < 0:
            raise ValidationException("Bonus spins cannot be negative.")
        self.get_campaign(campaign_id)
        row = WheelBonusSpin.query.filter_by(campaign_id=campaign_id, user_id=user_id).first()
        previous = row.credits if row else 0
        if row is None:
            row = WheelBonusSpin(campaign_id=campaign_id, user_id=user_id)
            db.session.add(row)
        row.credits = credits
        db.session.commit()
        SecurityLogger.log_admin_event(
            'bonus_spins_set', campaign_id=campaign_id, target_user_id=user_id, action='set_bonus_spins',
            details={'from': previous, 'to': credits}
        )
        return row

    def reset_all_bonus_spins(self, campaign_id: int) -> int:
        self.get_campaign(campaign_id)
        result = db.session.execute(
            update(WheelBonusSpin)
            .where(WheelBonusSpin.campaign_id == campaign_id, WheelBonusSpin.credits > 0)
            .values(credits=0)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        SecurityLogger.log_admin_event(
            'bonus_spins_reset', campaign_id=campaign_id, action='reset_all_bonus_spins',
            details={'users_affected': result.rowcount}
        )
        return result.rowcount
