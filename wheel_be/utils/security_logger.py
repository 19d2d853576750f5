"""
Audit logging for wheel spins, ledger movements and admin actions.
Events are emitted as single-line JSON payloads on the Flask app logger.
"""

import logging
from datetime import datetime, timezone
from flask import current_app, g, request, has_request_context
import json


def _request_context():
    try:
        request_id = g.get('request_id', 'N/A')
    except RuntimeError:
        # Outside application context
        request_id = 'N/A'
    if has_request_context():
        return request_id, request.remote_addr, request.headers.get('User-Agent')
    return request_id, None, None


class SecurityLogger:
    """Centralized audit event logging"""

    @staticmethod
    def log_wheel_event(event_type: str, user_id: int, campaign_id: int = None,
                        slice_position: int = None, cost: int = None,
                        used_bonus_spin: bool = False, details: dict = None):
        """Log spin attempts, commits and rejections"""
        request_id, ip_address, _ = _request_context()

        event_data = {
            'event_type': 'wheel',
            'sub_type': event_type,
            'user_id': user_id,
            'campaign_id': campaign_id,
            'slice_position': slice_position,
            'cost': cost,
            'used_bonus_spin': used_bonus_spin,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        current_app.logger.info(f"WHEEL_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_ledger_event(event_type: str, campaign_id: int, amount: int = None,
                         spent_before: int = None, spent_after: int = None,
                         remaining_after: int = None, total_spins: int = None,
                         details: dict = None):
        """Log budget ledger movements"""
        request_id, _, _ = _request_context()

        event_data = {
            'event_type': 'ledger',
            'sub_type': event_type,
            'campaign_id': campaign_id,
            'amount': amount,
            'spent_before': spent_before,
            'spent_after': spent_after,
            'remaining_after': remaining_after,
            'total_spins': total_spins,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'details': details or {}
        }

        current_app.logger.info(f"LEDGER_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_security_event(event_type: str, severity: str = 'medium', user_id: int = None,
                           details: dict = None):
        """Log security-related events"""
        request_id, ip_address, user_agent = _request_context()

        event_data = {
            'event_type': 'security',
            'sub_type': event_type,
            'severity': severity,
            'user_id': user_id,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'user_agent': user_agent,
            'details': details or {}
        }

        level_map = {
            'low': logging.INFO,
            'medium': logging.WARNING,
            'high': logging.ERROR,
            'critical': logging.CRITICAL
        }

        level = level_map.get(severity, logging.WARNING)
        current_app.logger.log(level, f"SECURITY_EVENT: {json.dumps(event_data, default=str)}")

    @staticmethod
    def log_admin_event(event_type: str, campaign_id: int = None, target_user_id: int = None,
                        action: str = None, details: dict = None):
        """Log administrative actions made through the service-token API or CLI"""
        request_id, ip_address, _ = _request_context()

        event_data = {
            'event_type': 'admin',
            'sub_type': event_type,
            'campaign_id': campaign_id,
            'target_user_id': target_user_id,
            'action': action,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        current_app.logger.warning(f"ADMIN_EVENT: {json.dumps(event_data, default=str)}")
