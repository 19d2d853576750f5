from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required

from ..models import WheelSlice
from ..schemas import SpinRequestSchema, PublicSliceSchema, PlayerSpinSchema, CLIENT_OUTCOME_FIELDS
from ..exceptions import CampaignNotLiveException, ValidationException, RateLimitExceededException
from ..error_codes import ErrorCodes
from ..extensions import limiter
from ..services.wheel_spin_service import WheelSpinService
from ..services.websocket_manager import websocket_manager
from ..utils.auth import current_user_id
from ..utils.security_logger import SecurityLogger

wheel_bp = Blueprint('wheel', __name__, url_prefix='/api/wheel')


def _spin_http_limit():
    return current_app.config.get('WHEEL_SPIN_HTTP_LIMIT', '30 per minute')


@wheel_bp.route('/config', methods=['GET'])
def get_wheel_config():
    """Public wheel layout: enabled flag plus the live campaign's slices (no costs)."""
    service = WheelSpinService()
    campaign_id = request.args.get('campaign_id', None, type=int)
    try:
        campaign = service.get_live_campaign(campaign_id)
    except CampaignNotLiveException:
        return jsonify({'status': True, 'is_enabled': False, 'campaign_id': None, 'segments': []}), 200

    slices = (WheelSlice.query
              .filter_by(campaign_id=campaign.id, enabled=True)
              .order_by(WheelSlice.position)
              .all())
    return jsonify({
        'status': True,
        'is_enabled': True,
        'campaign_id': campaign.id,
        'segments': PublicSliceSchema(many=True).dump(slices)
    }), 200


@wheel_bp.route('/spin', methods=['POST'])
@jwt_required()
@limiter.limit(_spin_http_limit)
def spin():
    user_id = current_user_id()
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationException("Request body must be a JSON object.")

    tampered = sorted(set(payload) & set(CLIENT_OUTCOME_FIELDS))
    if tampered:
        SecurityLogger.log_security_event(
            'wheel_outcome_tampering', severity='high', user_id=user_id,
            details={'fields': tampered}
        )
        raise ValidationException(
            "Spin outcomes are decided by the server.",
            details={'error_code': ErrorCodes.OUTCOME_TAMPERING, 'fields': tampered}
        )

    data = SpinRequestSchema().load(payload)
    service = WheelSpinService()
    try:
        outcome = service.spin(user_id, data['campaign_id'])
    except RateLimitExceededException as e:
        if e.reset_at is not None:
            e.details.setdefault('retry_after', max(0, int((e.reset_at - service.clock()).total_seconds())))
        raise

    current_app.logger.info(
        f"User {user_id} spun campaign {outcome.campaign_id}: slice {outcome.slice_position} ({outcome.reward_type})"
    )
    websocket_manager.broadcast_wheel_reward(outcome)

    return jsonify({
        'status': True,
        'result': outcome.to_dict(),
        'spin_status': service.get_spin_status(user_id, outcome.campaign_id)
    }), 200


@wheel_bp.route('/spin-status', methods=['GET'])
@jwt_required()
def spin_status():
    user_id = current_user_id()
    campaign_id = request.args.get('campaign_id', None, type=int)
    return jsonify({'status': True, **WheelSpinService().get_spin_status(user_id, campaign_id)}), 200


@wheel_bp.route('/spins', methods=['GET'])
@jwt_required()
def my_spins():
    user_id = current_user_id()
    spins = WheelSpinService().get_user_spins(user_id)
    return jsonify({'status': True, 'spins': PlayerSpinSchema(many=True).dump(spins)}), 200
