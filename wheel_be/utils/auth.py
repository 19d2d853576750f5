from flask import g, jsonify
from flask_jwt_extended import get_jwt_identity

from wheel_be.error_codes import ErrorCodes
from wheel_be.exceptions import AuthenticationException


def current_user_id() -> int:
    """Numeric user id carried in the verified JWT ``sub`` claim."""
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        raise AuthenticationException("Token identity is not a valid user id.")


def _auth_error(status_message, status_code):
    return jsonify({
        'request_id': g.get('request_id', 'N/A'),
        'status': False,
        'error_code': ErrorCodes.UNAUTHENTICATED,
        'status_message': status_message,
        'details': {},
        'action_button': None
    }), status_code


def expired_token_callback(_jwt_header, _jwt_payload):
    return _auth_error('Token has expired.', 401)


def invalid_token_callback(reason):
    return _auth_error(f'Invalid token: {reason}', 401)


def missing_token_callback(reason):
    return _auth_error('Missing or invalid authorization token.', 401)


def register_jwt_handlers(jwt):
    jwt.expired_token_loader(expired_token_callback)
    jwt.invalid_token_loader(invalid_token_callback)
    jwt.unauthorized_loader(missing_token_callback)
