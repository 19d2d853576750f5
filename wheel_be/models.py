from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
from sqlalchemy import BigInteger, CheckConstraint, Index, UniqueConstraint

db = SQLAlchemy()

CAMPAIGN_STATUSES = ('draft', 'live', 'paused')
SLICE_TYPES = ('lose', 'cash', 'discount', 'free_spin', 'custom')
BUDGET_MODES = ('auto', 'target_expense_rate', 'manual')



class WheelCampaign(db.Model):
    __tablename__ = 'wheel_campaign'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), default='draft', nullable=False, index=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    slices = db.relationship('WheelSlice', back_populates='campaign', order_by='WheelSlice.position', lazy=True)
    budget = db.relationship('WheelBudget', back_populates='campaign', uselist=False, lazy=True)
    fairness_rules = db.relationship('WheelFairnessRules', back_populates='campaign', uselist=False, lazy=True)

    def __repr__(self):
        return f"<WheelCampaign {self.id} {self.name} ({self.status})>"


class WheelSlice(db.Model):
    """One reward outcome on the wheel. ``position`` is its stable catalog index."""
    __tablename__ = 'wheel_slice'
    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('wheel_campaign.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(20), nullable=False)
    label = db.Column(db.String(100), nullable=False)
    prize_value = db.Column(db.String(50), nullable=True)
    cost = db.Column(BigInteger, default=0, nullable=False)  # minor currency units
    color = db.Column(db.String(7), nullable=True)
    enabled = db.Column(db.Boolean, default=True, nullable=False)
    max_wins = db.Column(db.Integer, nullable=True)
    current_wins = db.Column(db.Integer, default=0, nullable=False)

    campaign = db.relationship('WheelCampaign', back_populates='slices')

    __table_args__ = (
        UniqueConstraint('campaign_id', 'position', name='uq_wheel_slice_campaign_position'),
        CheckConstraint('cost >= 0', name='ck_wheel_slice_cost_non_negative'),
    )

    def __repr__(self):
        return f"<WheelSlice {self.position} {self.type} cost={self.cost}>"


class WheelBudget(db.Model):
    """Budget ledger for one campaign.

    ``budget_spent + budget_remaining == total_budget`` holds after every commit.
    """
    __tablename__ = 'wheel_budget'
    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('wheel_campaign.id'), nullable=False, unique=True)
    mode = db.Column(db.String(30), default='auto', nullable=False)
    total_budget = db.Column(BigInteger, default=0, nullable=False)
    budget_spent = db.Column(BigInteger, default=0, nullable=False)
    budget_remaining = db.Column(BigInteger, default=0, nullable=False)
    total_spins = db.Column(db.Integer, default=0, nullable=False)
    average_payout_per_spin = db.Column(db.Float, default=0.0, nullable=False)

    # auto mode
    target_spins = db.Column(db.Integer, nullable=True)
    # target_expense_rate mode
    target_expense_per_day = db.Column(BigInteger, nullable=True)
    target_expense_per_rolling_spins = db.Column(BigInteger, nullable=True)
    rolling_spin_window_size = db.Column(db.Integer, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    campaign = db.relationship('WheelCampaign', back_populates='budget')

    __table_args__ = (
        CheckConstraint('budget_remaining >= 0', name='ck_wheel_budget_remaining_non_negative'),
        CheckConstraint('budget_spent >= 0', name='ck_wheel_budget_spent_non_negative'),
    )

    def __repr__(self):
        return f"<WheelBudget campaign={self.campaign_id} {self.budget_spent}/{self.total_budget} mode={self.mode}>"


class WheelFairnessRules(db.Model):
    __tablename__ = 'wheel_fairness_rules'
    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('wheel_campaign.id'), nullable=False, unique=True)
    spins_per_window = db.Column(db.Integer, default=1, nullable=False)  # -1 = unlimited
    free_spin_cannot_chain = db.Column(db.Boolean, default=True, nullable=False)

    campaign = db.relationship('WheelCampaign', back_populates='fairness_rules')

    def __repr__(self):
        return f"<WheelFairnessRules campaign={self.campaign_id} spins_per_window={self.spins_per_window}>"


class WheelSpin(db.Model):
    """Append-only audit record of a committed spin."""
    __tablename__ = 'wheel_spin'
    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('wheel_campaign.id'), nullable=False)
    slice_id = db.Column(db.Integer, db.ForeignKey('wheel_slice.id'), nullable=False)
    slice_position = db.Column(db.Integer, nullable=False)
    slice_type = db.Column(db.String(20), nullable=False)
    reward_label = db.Column(db.String(100), nullable=False)
    prize_value = db.Column(db.String(50), nullable=True)
    user_id = db.Column(db.Integer, nullable=False)
    cost = db.Column(BigInteger, default=0, nullable=False)
    used_bonus_spin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    wheel_slice = db.relationship('WheelSlice')

    __table_args__ = (
        Index('ix_wheel_spin_user_created', 'user_id', 'created_at'),
        Index('ix_wheel_spin_campaign_created', 'campaign_id', 'created_at'),
    )

    def __repr__(self):
        return f"<WheelSpin {self.id} user={self.user_id} slice={self.slice_position} cost={self.cost}>"


class WheelBonusSpin(db.Model):
    """Free-spin credits a user holds for a campaign."""
    __tablename__ = 'wheel_bonus_spin'
    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('wheel_campaign.id'), nullable=False)
    user_id = db.Column(db.Integer, nullable=False)
    credits = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        UniqueConstraint('campaign_id', 'user_id', name='uq_wheel_bonus_spin_campaign_user'),
        CheckConstraint('credits >= 0', name='ck_wheel_bonus_spin_credits_non_negative'),
    )

    def __repr__(self):
        return f"<WheelBonusSpin campaign={self.campaign_id} user={self.user_id} credits={self.credits}>"
