from datetime import datetime, timedelta, timezone

import pytest
from flask import jsonify, request
from sqlalchemy.exc import OperationalError

from wheel_be.app import create_app
from wheel_be.config import TestingConfig
from wheel_be.exceptions import (
    AppException,
    ValidationException,
    NotFoundException,
    InternalServerErrorException,
    CampaignNotLiveException,
    RateLimitExceededException,
    NoEligibleSlicesException
)
from wheel_be.error_codes import ErrorCodes
from wheel_be.schemas import BonusSpinUpdateSchema


class TestAppErrorHandlers:

    @pytest.fixture(scope="class")
    def app(self):
        """One app instance with throwaway routes for every handler."""
        app, _ = create_app(TestingConfig)

        @app.route('/test/app_exception')
        def route_app_exception():
            raise AppException(
                error_code="TEST_APP_EXC",
                status_message="This is an AppException",
                status_code=450,
                details={"info": "some app details"},
                action_button={"text": "Retry", "actionType": "RELOAD"}
            )

        @app.route('/test/validation_exception')
        def route_validation_exception():
            raise ValidationException(status_message="Invalid input provided", details={"field": "wrong"})

        @app.route('/test/not_found_exception')
        def route_not_found_exception():
            raise NotFoundException(status_message="Custom resource not found")

        @app.route('/test/campaign_not_live')
        def route_campaign_not_live():
            raise CampaignNotLiveException()

        @app.route('/test/no_eligible_slices')
        def route_no_eligible_slices():
            raise NoEligibleSlicesException()

        @app.route('/test/internal_server_error_exception')
        def route_internal_server_error_exception():
            raise InternalServerErrorException(status_message="Custom server error")

        @app.route('/test/rate_limited')
        def route_rate_limited():
            e = RateLimitExceededException(reset_at=datetime.now(timezone.utc) + timedelta(hours=1))
            e.details['retry_after'] = 3600
            raise e

        @app.route('/test/unhandled_exception')
        def route_unhandled_exception():
            raise ValueError("A generic unhandled error")

        @app.route('/test/database_error')
        def route_database_error():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        @app.route('/test/method_not_allowed', methods=['GET'])
        def route_method_not_allowed():
            return jsonify(status=True)

        @app.route('/test/marshmallow_validation_error', methods=['POST'])
        def route_marshmallow_error():
            BonusSpinUpdateSchema().load(request.get_json())
            return jsonify(status=True)

        app_context = app.app_context()
        app_context.push()
        yield app
        app_context.pop()

    @pytest.fixture()
    def client(self, app):
        return app.test_client()

    def test_app_exception_handler(self, client):
        response = client.get('/test/app_exception')
        assert response.status_code == 450
        json_data = response.get_json()
        assert json_data['status'] is False
        assert json_data['error_code'] == "TEST_APP_EXC"
        assert json_data['status_message'] == "This is an AppException"
        assert json_data['details'] == {"info": "some app details"}
        assert json_data['action_button'] == {"text": "Retry", "actionType": "RELOAD"}
        assert json_data['request_id'] == response.headers['X-Request-ID']

    def test_validation_exception_handler(self, client, caplog):
        response = client.get('/test/validation_exception')
        assert response.status_code == 422
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.VALIDATION_ERROR
        assert json_data['details'] == {"field": "wrong"}
        assert any(rec.levelname == 'WARNING' and ErrorCodes.VALIDATION_ERROR in rec.getMessage()
                   for rec in caplog.records)

    def test_not_found_exception_handler(self, client):
        response = client.get('/test/not_found_exception')
        assert response.status_code == 404
        assert response.get_json()['status_message'] == "Custom resource not found"

    def test_campaign_not_live_handler(self, client):
        response = client.get('/test/campaign_not_live')
        assert response.status_code == 409
        assert response.get_json()['error_code'] == ErrorCodes.CAMPAIGN_NOT_LIVE

    def test_no_eligible_slices_is_logged_as_error(self, client, caplog):
        response = client.get('/test/no_eligible_slices')
        assert response.status_code == 500
        assert response.get_json()['error_code'] == ErrorCodes.NO_ELIGIBLE_SLICES
        assert any(rec.levelname == 'ERROR' and ErrorCodes.NO_ELIGIBLE_SLICES in rec.getMessage()
                   for rec in caplog.records)

    def test_internal_server_error_exception_handler(self, client):
        response = client.get('/test/internal_server_error_exception')
        assert response.status_code == 500
        assert response.get_json()['status_message'] == "Custom server error"

    def test_rate_limit_sets_retry_after(self, client):
        response = client.get('/test/rate_limited')
        assert response.status_code == 429
        assert response.headers['Retry-After'] == '3600'
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.SPIN_RATE_LIMITED
        assert 'reset_at' in json_data['details']

    def test_werkzeug_not_found_handler(self, client):
        response = client.get('/this_route_does_not_exist')
        assert response.status_code == 404
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.NOT_FOUND
        assert json_data['details']['path'] == '/this_route_does_not_exist'

    def test_method_not_allowed_handler(self, client):
        response = client.post('/test/method_not_allowed')
        assert response.status_code == 405
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.METHOD_NOT_ALLOWED
        assert json_data['status_message'] == "Method Not Allowed"

    def test_marshmallow_validation_error_handler(self, client):
        response = client.post('/test/marshmallow_validation_error', json={})
        assert response.status_code == 422
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.VALIDATION_ERROR
        assert json_data['status_message'] == "Input validation failed."
        assert json_data['details']['errors'] == {'bonus_spins': ['Missing data for required field.']}

    def test_database_error_handler(self, client):
        response = client.get('/test/database_error')
        assert response.status_code == 500
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.INTERNAL_SERVER_ERROR
        assert 'locked' not in json_data['status_message']

    def test_unhandled_exception_handler(self, client, caplog):
        response = client.get('/test/unhandled_exception')
        assert response.status_code == 500
        json_data = response.get_json()
        assert json_data['error_code'] == ErrorCodes.INTERNAL_SERVER_ERROR
        assert json_data['status_message'] == 'An unexpected internal server error occurred. Please try again later.'
        assert any(rec.levelname == 'CRITICAL' for rec in caplog.records)
