from dotenv import load_dotenv
import os

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, jsonify, current_app, g, has_app_context
import uuid
import logging
from http import HTTPStatus

import click
from flask.cli import AppGroup
from flask_migrate import Migrate
from flask_cors import CORS
from flask_socketio import SocketIO
from flask_jwt_extended import JWTManager
from flask_talisman import Talisman
from marshmallow import ValidationError
from pythonjsonlogger import jsonlogger
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException

from .models import db, WheelBudget
from .config import Config
from .error_codes import ErrorCodes
from .exceptions import AppException, RateLimitExceededException
from .extensions import limiter
from .utils.auth import register_jwt_handlers
from .routes.wheel import wheel_bp
from .routes.admin_wheel import admin_wheel_bp
from .services.wheel_admin_service import WheelAdminService
from .services.websocket_manager import websocket_manager

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')


# Custom Logging Filter for Request ID
class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = g.get('request_id', 'N/A') if has_app_context() else 'N/A'
        return True


def _error_body(error_code, status_message, details=None, action_button=None):
    return {
        'request_id': g.get('request_id', 'N/A'),
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details if details is not None else {},
        'action_button': action_button
    }


def create_app(config_class=Config):
    """Application factory."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # --- Security Headers with Talisman ---
    csp = {
        'default-src': "'self'",
        'script-src': "'self'",
        'style-src': "'self'",
        'img-src': "'self' data:",
        'connect-src': "'self'",
        'frame-ancestors': "'none'"
    }
    Talisman(app,
             force_https=not (app.debug or app.testing),
             strict_transport_security=True,
             content_security_policy=csp)

    # --- CORS Setup ---
    allowed_origins = []
    if app.debug:
        allowed_origins.extend(["http://localhost:8080", "http://127.0.0.1:8080"])
    if getattr(config_class, 'CORS_ORIGINS_LIST', None):
        allowed_origins.extend(config_class.CORS_ORIGINS_LIST)

    if allowed_origins:
        CORS(app,
             origins=allowed_origins,
             supports_credentials=True,
             methods=['GET', 'POST', 'PUT', 'OPTIONS'],
             allow_headers=['Content-Type', 'Authorization', 'X-CSRF-Token', 'X-Service-Token'],
             expose_headers=['X-RateLimit-Limit', 'X-RateLimit-Remaining', 'Retry-After'],
             max_age=86400)
        app.logger.info(f"CORS configured for origins: {allowed_origins}")
    else:
        app.logger.warning("No CORS origins configured - API will reject cross-origin requests")

    # --- Logging Configuration ---
    if not app.debug:
        logger = app.logger
        handler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(request_id)s %(module)s %(funcName)s %(lineno)d %(message)s'
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        logger.handlers.clear()
        logger.setLevel(logging.INFO)
        # app.logger is 'wheel_be.app', so the package logger also covers the service modules.
        package_logger = logging.getLogger('wheel_be')
        package_logger.handlers = [handler]
        package_logger.setLevel(logging.INFO)
    elif not app.logger.handlers:
        logging.basicConfig(level=logging.DEBUG)

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())

    @app.after_request
    def add_request_id_header(response):
        response.headers['X-Request-ID'] = g.get('request_id', 'N/A')
        return response

    log_production_warnings(app)

    # --- Rate Limiter Setup ---
    if app.config.get("TESTING"):
        app.config['RATELIMIT_ENABLED'] = False
        app.config['RATELIMIT_DEFAULT_LIMITS_ENABLED'] = False
    else:
        app.config.setdefault('RATELIMIT_ENABLED', True)
        app.config.setdefault('RATELIMIT_DEFAULT', "200 per hour")
    limiter.init_app(app)

    # --- Database Setup ---
    db.init_app(app)
    Migrate(app, db, directory=MIGRATIONS_DIR)

    # --- WebSocket Setup ---
    socketio = SocketIO(app,
                        cors_allowed_origins=allowed_origins,
                        async_mode='threading',
                        logger=app.logger,
                        engineio_logger=app.logger)
    websocket_manager.socketio = socketio
    websocket_manager.init_app(app)
    app.socketio = socketio

    # --- JWT Setup ---
    jwt = JWTManager(app)
    register_jwt_handlers(jwt)

    # --- Error Handlers ---
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return jsonify(_error_body(
            ErrorCodes.VALIDATION_ERROR, 'Input validation failed.', {'errors': e.messages}
        )), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        current_app.logger.error(
            f"Request ID: {g.get('request_id', 'N/A')} - Database error. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return jsonify(_error_body(
            ErrorCodes.INTERNAL_SERVER_ERROR, 'A database error occurred. Please try again later.'
        )), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code == 401:
            error_code = ErrorCodes.UNAUTHENTICATED
        elif e.code == 403:
            error_code = ErrorCodes.FORBIDDEN
        elif e.code == 429:
            error_code = ErrorCodes.TOO_MANY_REQUESTS
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code}"
        )
        details = {'description': e.description}
        if e.code == 404:
            details['path'] = request.path
        response = e.get_response()
        response.data = jsonify(_error_body(error_code, e.name, details)).data
        response.content_type = "application/json"
        return response

    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            log = current_app.logger.error if e.status_code >= 500 else current_app.logger.warning
            log(
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=e.status_code >= 500
            )
            response = jsonify(_error_body(e.error_code, e.status_message, e.details, e.action_button))
            response.status_code = e.status_code
            if isinstance(e, RateLimitExceededException) and 'retry_after' in e.details:
                response.headers['Retry-After'] = str(e.details['retry_after'])
            return response

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return jsonify(_error_body(
            ErrorCodes.INTERNAL_SERVER_ERROR,
            'An unexpected internal server error occurred. Please try again later.'
        )), HTTPStatus.INTERNAL_SERVER_ERROR

    # Register Blueprints
    app.register_blueprint(wheel_bp)
    app.register_blueprint(admin_wheel_bp)

    app.cli.add_command(wheel_cli)

    return app, socketio


wheel_cli = AppGroup('wheel', help='Prize wheel administration.')


@wheel_cli.command('seed-campaign')
@click.option('-n', '--name', default='Daily Wheel', help='Campaign name')
@click.option('-b', '--budget', 'total_budget', type=int, required=True, help='Total budget in cents')
@click.option('-m', '--mode', type=click.Choice(['auto', 'target_expense_rate', 'manual']), default='auto')
@click.option('-t', '--target-spins', type=int, default=None, help='Target spin count (auto mode)')
@click.option('--spins-per-window', type=int, default=1, help='Spins per user per window, -1 for unlimited')
@click.option('--live/--draft', default=False, help='Publish the campaign immediately')
def seed_campaign_command(name, total_budget, mode, target_spins, spins_per_window, live):
    """Creates a campaign with the default 15-slice catalog."""
    try:
        campaign = WheelAdminService().create_campaign(
            name=name,
            total_budget=total_budget,
            mode=mode,
            target_spins=target_spins,
            spins_per_window=spins_per_window,
            status='live' if live else 'draft',
        )
    except AppException as e:
        db.session.rollback()
        raise click.ClickException(e.status_message)
    click.echo(f"Created campaign {campaign.id} '{campaign.name}' ({campaign.status}) with budget {total_budget}.")


@wheel_cli.command('reset-budget')
@click.argument('campaign_id', type=int)
def reset_budget_command(campaign_id):
    """Zeroes spent and spin count; remaining returns to the total budget."""
    try:
        budget = WheelAdminService().reset_budget(campaign_id)
    except AppException as e:
        raise click.ClickException(e.status_message)
    click.echo(f"Campaign {campaign_id} budget reset: remaining {budget.budget_remaining} of {budget.total_budget}.")


@wheel_cli.command('show-ledger')
@click.argument('campaign_id', type=int)
def show_ledger_command(campaign_id):
    budget = WheelBudget.query.filter_by(campaign_id=campaign_id).first()
    if budget is None:
        raise click.ClickException(f"No budget ledger for campaign {campaign_id}.")
    click.echo(f"mode:           {budget.mode}")
    click.echo(f"total budget:   {budget.total_budget}")
    click.echo(f"spent:          {budget.budget_spent}")
    click.echo(f"remaining:      {budget.budget_remaining}")
    click.echo(f"total spins:    {budget.total_spins}")
    click.echo(f"avg payout:     {budget.average_payout_per_spin:.2f}")


def log_production_warnings(app):
    if app.debug or app.testing:
        return
    if app.config.get('SERVICE_API_TOKEN') == 'default_service_token_please_change':
        app.logger.critical(
            "CRITICAL SECURITY WARNING: Default SERVICE_API_TOKEN is in use. "
            "Anyone knowing it can change wheel budgets."
        )
    if app.config.get('RATELIMIT_STORAGE_URI') == 'memory://':
        app.logger.warning(
            "RATELIMIT_STORAGE_URI is 'memory://'. Limits are per process; "
            "use Redis (e.g., 'redis://localhost:6379/0') for multi-worker deployments."
        )
    if str(app.config.get('SQLALCHEMY_DATABASE_URI', '')).startswith('sqlite'):
        app.logger.warning(
            "SQLite database in use. The per-campaign spin lock only covers one process; "
            "run a single worker or switch to PostgreSQL."
        )
