"""
Configuration module with fail-fast validation.

Production environments must provide all required environment variables.
"""
from wheel_be.config_validator import validate_production_config

class Config:
    """Production-ready configuration with fail-fast validation."""

    _validated_config = validate_production_config()

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = _validated_config['SQLALCHEMY_DATABASE_URI']
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT Configuration. Tokens are issued by the identity service; we only verify them.
    JWT_SECRET_KEY = _validated_config['JWT_SECRET_KEY']
    JWT_ACCESS_TOKEN_EXPIRES = _validated_config['JWT_ACCESS_TOKEN_EXPIRES']
    JWT_REFRESH_TOKEN_EXPIRES = _validated_config['JWT_REFRESH_TOKEN_EXPIRES']
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_COOKIE_SECURE = _validated_config['JWT_COOKIE_SECURE']
    JWT_COOKIE_SAMESITE = 'Strict'
    JWT_COOKIE_CSRF_PROTECT = True
    JWT_ACCESS_CSRF_HEADER_NAME = 'X-CSRF-Token'

    # Rate Limiter Storage URI
    RATELIMIT_STORAGE_URI = _validated_config['RATELIMIT_STORAGE_URI']
    WHEEL_SPIN_HTTP_LIMIT = "30 per minute"

    DEBUG = _validated_config['DEBUG']

    # Service API Token guarding /api/admin/wheel
    SERVICE_API_TOKEN = _validated_config['SERVICE_API_TOKEN']

    CORS_ORIGINS_LIST = _validated_config['CORS_ORIGINS']

    # Feature Flags
    WHEEL_ENABLED = _validated_config['WHEEL_ENABLED']

    # Allocation engine tunables
    WHEEL_SPIN_WINDOW_HOURS = _validated_config['WHEEL_SPIN_WINDOW_HOURS']
    WHEEL_FREE_SPIN_WINDOW_HOURS = _validated_config['WHEEL_FREE_SPIN_WINDOW_HOURS']
    WHEEL_FREE_SPIN_CAP = _validated_config['WHEEL_FREE_SPIN_CAP']
    WHEEL_PACE_THRESHOLD = _validated_config['WHEEL_PACE_THRESHOLD']
    WHEEL_EXPENSIVE_OVERRIDE_PROBABILITY = _validated_config['WHEEL_EXPENSIVE_OVERRIDE_PROBABILITY']
    WHEEL_COMMIT_MAX_RETRIES = _validated_config['WHEEL_COMMIT_MAX_RETRIES']
    WHEEL_USER_HISTORY_LIMIT = 50


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///./test_wheel_be_isolated.db' # File-based so worker threads share it
    DATABASE_FILE_PATH = SQLALCHEMY_DATABASE_URI.replace('sqlite:///', '')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = 'test-jwt-secret-key-that-is-long-enough-for-hs256'
    JWT_COOKIE_CSRF_PROTECT = False
    SERVICE_API_TOKEN = 'test-service-token'
    WHEEL_ENABLED = True
    RATELIMIT_ENABLED = False
    RATELIMIT_DEFAULT_LIMITS_ENABLED = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False, 'timeout': 30}
    }
