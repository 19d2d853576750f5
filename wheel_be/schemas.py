from marshmallow import Schema, fields, ValidationError, validates_schema, RAISE
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from marshmallow.validate import OneOf, Range

from .models import (
    db, WheelCampaign, WheelSlice, WheelBudget, WheelFairnessRules, WheelSpin,
    BUDGET_MODES, CAMPAIGN_STATUSES
)

# Fields a client may never send: the server alone decides the outcome.
CLIENT_OUTCOME_FIELDS = (
    'slice_position', 'slice_id', 'slice_order', 'reward_type', 'reward_label',
    'reward_value', 'prize_value', 'cost',
)

# --- Base Schemas (for pagination etc.) ---
class PaginationSchema(Schema):
    page = fields.Int(dump_only=True)
    pages = fields.Int(dump_only=True)
    per_page = fields.Int(dump_only=True)
    total = fields.Int(dump_only=True)

# --- Player Schemas ---
class SpinRequestSchema(Schema):
    class Meta:
        unknown = RAISE

    campaign_id = fields.Int(load_default=None, validate=Range(min=1))

class PublicSliceSchema(Schema):
    # Costs stay server-side.
    position = fields.Int()
    type = fields.Str()
    label = fields.Str()
    prize_value = fields.Str(allow_none=True)
    color = fields.Str(allow_none=True)

class PlayerSpinSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WheelSpin
        sqla_session = db.session
        include_fk = True
        exclude = ("cost", "user_id", "slice_id")

# --- Admin Schemas ---
class WheelCampaignSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WheelCampaign
        sqla_session = db.session

class WheelSliceSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WheelSlice
        sqla_session = db.session
        include_fk = True

    cost = auto_field(metadata={"description": "Cost to the business in minor currency units"})

class WheelBudgetSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WheelBudget
        sqla_session = db.session
        include_fk = True

class BudgetUpdateSchema(Schema):
    mode = fields.Str(validate=OneOf(BUDGET_MODES))
    total_budget = fields.Int(validate=Range(min=0))
    target_spins = fields.Int(allow_none=True, validate=Range(min=1))
    target_expense_per_day = fields.Int(allow_none=True, validate=Range(min=0))
    target_expense_per_rolling_spins = fields.Int(allow_none=True, validate=Range(min=0))
    rolling_spin_window_size = fields.Int(allow_none=True, validate=Range(min=1, max=10000))

    @validates_schema
    def validate_not_empty(self, data, **kwargs):
        if not data:
            raise ValidationError('At least one budget field must be provided.')

class WheelFairnessRulesSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WheelFairnessRules
        sqla_session = db.session
        include_fk = True

class FairnessRulesUpdateSchema(Schema):
    spins_per_window = fields.Int(validate=Range(min=-1, max=1000, error="Use -1 for unlimited spins."))
    free_spin_cannot_chain = fields.Bool()

    @validates_schema
    def validate_not_empty(self, data, **kwargs):
        if not data:
            raise ValidationError('At least one fairness rule must be provided.')

class CampaignStatusSchema(Schema):
    status = fields.Str(required=True, validate=OneOf(CAMPAIGN_STATUSES))

class WheelSpinSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = WheelSpin
        sqla_session = db.session
        include_fk = True

class WheelSpinListSchema(PaginationSchema):
    spins = fields.Nested(WheelSpinSchema, many=True, attribute='items')

class SpinAuditQuerySchema(Schema):
    page = fields.Int(load_default=1, validate=Range(min=1))
    per_page = fields.Int(load_default=20, validate=Range(min=1, max=100))
    user_id = fields.Int(load_default=None)
    start_date = fields.DateTime(load_default=None)
    end_date = fields.DateTime(load_default=None)

class BonusSpinUpdateSchema(Schema):
    bonus_spins = fields.Int(required=True, validate=Range(min=0, max=1000))
