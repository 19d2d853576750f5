from flask import Blueprint, request, jsonify

from ..models import WheelSlice
from ..schemas import (
    WheelBudgetSchema, BudgetUpdateSchema, WheelFairnessRulesSchema, FairnessRulesUpdateSchema,
    WheelCampaignSchema, WheelSliceSchema, CampaignStatusSchema, WheelSpinListSchema,
    SpinAuditQuerySchema, BonusSpinUpdateSchema
)
from ..services.wheel_admin_service import WheelAdminService
from ..utils.decorators import service_token_required

admin_wheel_bp = Blueprint('admin_wheel', __name__, url_prefix='/api/admin/wheel')


@admin_wheel_bp.route('/campaigns/<int:campaign_id>', methods=['GET'])
@service_token_required
def get_campaign(campaign_id):
    campaign = WheelAdminService().get_campaign(campaign_id)
    slices = WheelSlice.query.filter_by(campaign_id=campaign_id).order_by(WheelSlice.position).all()
    return jsonify({
        'status': True,
        'campaign': WheelCampaignSchema().dump(campaign),
        'slices': WheelSliceSchema(many=True).dump(slices)
    }), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/status', methods=['PUT'])
@service_token_required
def set_campaign_status(campaign_id):
    data = CampaignStatusSchema().load(request.get_json(silent=True) or {})
    campaign = WheelAdminService().set_campaign_status(campaign_id, data['status'])
    return jsonify({'status': True, 'campaign': WheelCampaignSchema().dump(campaign)}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/budget', methods=['GET'])
@service_token_required
def get_budget(campaign_id):
    budget = WheelAdminService().get_budget(campaign_id)
    return jsonify({'status': True, 'budget': WheelBudgetSchema().dump(budget)}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/budget', methods=['PUT'])
@service_token_required
def update_budget(campaign_id):
    data = BudgetUpdateSchema().load(request.get_json(silent=True) or {})
    budget = WheelAdminService().update_budget(campaign_id, data)
    return jsonify({
        'status': True,
        'status_message': 'Budget updated.',
        'budget': WheelBudgetSchema().dump(budget)
    }), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/budget/reset', methods=['POST'])
@service_token_required
def reset_budget(campaign_id):
    budget = WheelAdminService().reset_budget(campaign_id)
    return jsonify({
        'status': True,
        'status_message': 'Budget reset.',
        'budget': WheelBudgetSchema().dump(budget)
    }), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/fairness', methods=['GET'])
@service_token_required
def get_fairness_rules(campaign_id):
    rules = WheelAdminService().get_fairness_rules(campaign_id)
    return jsonify({'status': True, 'fairness_rules': WheelFairnessRulesSchema().dump(rules)}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/fairness', methods=['PUT'])
@service_token_required
def update_fairness_rules(campaign_id):
    data = FairnessRulesUpdateSchema().load(request.get_json(silent=True) or {})
    rules = WheelAdminService().update_fairness_rules(campaign_id, data)
    return jsonify({'status': True, 'fairness_rules': WheelFairnessRulesSchema().dump(rules)}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/spins', methods=['GET'])
@service_token_required
def list_spins(campaign_id):
    query = SpinAuditQuerySchema().load(request.args)
    spins = WheelAdminService().list_spins(
        campaign_id,
        page=query['page'],
        per_page=query['per_page'],
        user_id=query['user_id'],
        start_date=query['start_date'],
        end_date=query['end_date'],
    )
    return jsonify({'status': True, 'spins': WheelSpinListSchema().dump(spins)}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/stats', methods=['GET'])
@service_token_required
def get_stats(campaign_id):
    return jsonify({'status': True, 'stats': WheelAdminService().get_stats(campaign_id)}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/users/<int:user_id>/bonus-spins', methods=['PUT'])
@service_token_required
def set_bonus_spins(campaign_id, user_id):
    data = BonusSpinUpdateSchema().load(request.get_json(silent=True) or {})
    row = WheelAdminService().set_bonus_spins(campaign_id, user_id, data['bonus_spins'])
    return jsonify({'status': True, 'user_id': user_id, 'bonus_spins': row.credits}), 200


@admin_wheel_bp.route('/campaigns/<int:campaign_id>/bonus-spins/reset', methods=['POST'])
@service_token_required
def reset_all_bonus_spins(campaign_id):
    count = WheelAdminService().reset_all_bonus_spins(campaign_id)
    return jsonify({
        'status': True,
        'status_message': f'Reset bonus spins for {count} users.',
        'users_affected': count
    }), 200
