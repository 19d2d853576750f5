"""
WebSocket manager for wheel reward notifications.

Every authenticated connection joins its private ``user:<id>`` room. Back-office
clients presenting the service token join ``admins`` and see every reward.
"""

from flask_socketio import emit, join_room, disconnect
from flask_jwt_extended import decode_token
from flask import current_app, request
from datetime import datetime, timezone
import hmac
import logging

logger = logging.getLogger(__name__)

ADMIN_ROOM = 'admins'
REWARD_EVENT = 'wheel:reward'


def user_room(user_id):
    return f"user:{user_id}"


class WebSocketManager:
    def __init__(self, app=None, socketio=None):
        self.socketio = socketio
        self.connected_users = {}  # socket_id -> user_id, or 'admin'

        if app and socketio:
            self.init_app(app)

    def init_app(self, app):
        self.socketio.on_event('connect', self.handle_connect)
        self.socketio.on_event('disconnect', self.handle_disconnect)

    def authenticate_user(self, auth_token=None):
        """Resolve a user id from a bearer token or the access token cookie."""
        try:
            if not auth_token:
                auth_token = request.cookies.get('access_token_cookie')
            if not auth_token:
                return None
            if auth_token.startswith('Bearer '):
                auth_token = auth_token[7:]
            user_id = decode_token(auth_token).get('sub')
            return int(user_id) if user_id is not None else None
        except Exception as e:
            logger.warning(f"WebSocket authentication failed: {str(e)}")
            return None

    def handle_connect(self, auth=None):
        auth = auth or {}
        service_token = auth.get('service_token') or request.args.get('service_token')
        expected = current_app.config.get('SERVICE_API_TOKEN')
        if service_token and expected and hmac.compare_digest(str(service_token), expected):
            join_room(ADMIN_ROOM)
            self.connected_users[request.sid] = 'admin'
            logger.info(f"Admin client connected via WebSocket (socket: {request.sid})")
            emit('connection_status', {'status': 'connected', 'role': 'admin'})
            return True

        user_id = self.authenticate_user(request.args.get('token') or auth.get('token'))
        if not user_id:
            logger.warning("WebSocket connection refused - invalid authentication")
            disconnect()
            return False

        join_room(user_room(user_id))
        self.connected_users[request.sid] = user_id
        logger.info(f"User {user_id} connected via WebSocket (socket: {request.sid})")
        emit('connection_status', {
            'status': 'connected',
            'user_id': user_id,
            'connected_at': datetime.now(timezone.utc).isoformat()
        })
        return True

    def handle_disconnect(self, *args):
        user_id = self.connected_users.pop(request.sid, None)
        if user_id is not None:
            logger.info(f"{user_id} disconnected from WebSocket")

    def broadcast_wheel_reward(self, outcome):
        """Push a committed spin to the winner and to the admin room.

        Delivery is best effort: the spin is already committed, so failures are
        logged and swallowed.
        """
        if not self.socketio:
            logger.debug("SocketIO not initialised; skipping wheel reward broadcast")
            return False

        payload = outcome.to_dict()
        try:
            self.socketio.emit(REWARD_EVENT, payload, to=user_room(outcome.user_id))
            self.socketio.emit(REWARD_EVENT, dict(payload, cost=outcome.cost), to=ADMIN_ROOM)
            return True
        except Exception as e:
            logger.error(f"Failed to broadcast wheel reward for spin {outcome.spin_id}: {str(e)}")
            return False


websocket_manager = WebSocketManager()
