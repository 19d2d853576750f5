"""
Configuration validation and startup checks.

Critical settings are validated fail-fast so a production deployment never
starts with insecure defaults or an out-of-range wheel tuning.
"""

import os
import sys
import warnings
import secrets
from typing import List, Tuple, Optional


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


class ConfigValidator:
    """Validates application configuration and enforces production security."""

    def __init__(self, is_production: bool = None):
        """
        Initialize the configuration validator.

        Args:
            is_production: If None, auto-detect based on FLASK_ENV and DEBUG settings
        """
        if is_production is None:
            flask_env = os.getenv('FLASK_ENV', '').lower()
            flask_debug = os.getenv('FLASK_DEBUG', 'False').lower()
            is_production = (
                flask_env == 'production' or
                (flask_env != 'development' and flask_debug not in ('true', '1', 't'))
            )

        self.is_production = is_production
        self.is_testing = os.getenv('TESTING', 'False').lower() in ('true', '1', 't')
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_required_env_var(self, var_name: str, description: str = None) -> Optional[str]:
        value = os.getenv(var_name)
        if not value:
            desc = description or var_name
            if self.is_production:
                self.errors.append(f"CRITICAL: {desc} ({var_name}) must be set in production environment")
            else:
                self.warnings.append(f"WARNING: {desc} ({var_name}) not set - using development fallback")
        return value

    def validate_jwt_config(self) -> Tuple[str, int, int]:
        """Validate JWT configuration."""
        jwt_secret = self.validate_required_env_var('JWT_SECRET_KEY', 'JWT Secret Key')

        if not jwt_secret:
            if self.is_production:
                raise ConfigValidationError("JWT_SECRET_KEY is required in production")
            jwt_secret = secrets.token_urlsafe(64)
            warnings.warn(
                "JWT_SECRET_KEY not set. Generated random key for development. "
                "Set JWT_SECRET_KEY environment variable for production!",
                UserWarning
            )
        elif len(jwt_secret) < 32:
            error_msg = "JWT_SECRET_KEY must be at least 32 characters long"
            if self.is_production:
                self.errors.append(f"CRITICAL: {error_msg}")
            else:
                self.warnings.append(f"WARNING: {error_msg}")

        try:
            access_expires = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', '3600'))
            refresh_expires = int(os.getenv('JWT_REFRESH_TOKEN_EXPIRES', str(86400 * 7)))
        except ValueError:
            raise ConfigValidationError("JWT token expiration values must be integers")

        return jwt_secret, access_expires, refresh_expires

    def validate_database_config(self) -> str:
        """Validate database configuration."""
        database_url = os.getenv('DATABASE_URL')

        if database_url:
            if not database_url.startswith(('postgresql://', 'postgresql+psycopg2://', 'sqlite://')):
                self.errors.append("CRITICAL: DATABASE_URL must use a supported database driver")
            return database_url

        if self.is_production:
            self.errors.append("CRITICAL: DATABASE_URL must be set in production")
            return None

        # SQLite is fine for local development but cannot serve several worker processes.
        self.warnings.append("DATABASE_URL not set - using local sqlite database wheel_dev.db")
        return 'sqlite:///wheel_dev.db'

    def validate_service_config(self) -> str:
        """Validate the service token that guards the admin wheel API."""
        service_token = os.getenv('SERVICE_API_TOKEN')

        if not service_token:
            if self.is_production:
                self.errors.append(
                    "CRITICAL: SERVICE_API_TOKEN must be set in production for admin wheel authentication"
                )
                service_token = None
            else:
                service_token = 'default_service_token_please_change'
                self.warnings.append(
                    "SERVICE_API_TOKEN not set - using development default. "
                    "Set a strong, unique token for production!"
                )
        elif service_token == 'default_service_token_please_change':
            if self.is_production:
                self.errors.append(
                    "CRITICAL: Default SERVICE_API_TOKEN detected in production. "
                    "Set a strong, unique SERVICE_API_TOKEN environment variable."
                )
            else:
                self.warnings.append("Using default SERVICE_API_TOKEN in development")

        return service_token

    def validate_rate_limiting_config(self) -> str:
        """Validate rate limiting configuration."""
        rate_limit_uri = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

        if rate_limit_uri == 'memory://' and self.is_production:
            self.errors.append(
                "CRITICAL: Rate limiting uses memory:// storage in production. "
                "Set RATELIMIT_STORAGE_URI to a Redis URL (e.g., redis://localhost:6379/0)"
            )
        elif rate_limit_uri == 'memory://':
            self.warnings.append("Rate limiting uses memory:// storage in development.")

        return rate_limit_uri

    def validate_cors_config(self) -> List[str]:
        """Validate CORS configuration."""
        cors_origins = os.getenv('CORS_ORIGINS', '')

        if not cors_origins and self.is_production:
            self.errors.append(
                "CRITICAL: CORS_ORIGINS must be set in production to specify allowed frontend domains"
            )
            return []

        if cors_origins:
            origins = [origin.strip() for origin in cors_origins.split(',') if origin.strip()]
            for origin in origins:
                if not origin.startswith(('http://', 'https://')):
                    self.warnings.append(f"CORS origin '{origin}' should include protocol (http:// or https://)")
            return origins

        return []

    def _read_number(self, var_name: str, default, cast, minimum=None, maximum=None):
        raw = os.getenv(var_name)
        if raw is None or raw == '':
            return default
        try:
            value = cast(raw)
        except ValueError:
            self.errors.append(f"CRITICAL: {var_name} must be a number, got '{raw}'")
            return default
        if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
            self.errors.append(f"CRITICAL: {var_name}={value} is outside the range [{minimum}, {maximum}]")
            return default
        return value

    def validate_wheel_config(self) -> dict:
        """Validate the allocation engine tunables."""
        return {
            'WHEEL_SPIN_WINDOW_HOURS': self._read_number('WHEEL_SPIN_WINDOW_HOURS', 12, int, 1, 24 * 7),
            'WHEEL_FREE_SPIN_WINDOW_HOURS': self._read_number('WHEEL_FREE_SPIN_WINDOW_HOURS', 24, int, 1, 24 * 7),
            'WHEEL_FREE_SPIN_CAP': self._read_number('WHEEL_FREE_SPIN_CAP', 1, int, 0),
            'WHEEL_PACE_THRESHOLD': self._read_number('WHEEL_PACE_THRESHOLD', 0.95, float, 0.0, 1.0),
            'WHEEL_EXPENSIVE_OVERRIDE_PROBABILITY': self._read_number(
                'WHEEL_EXPENSIVE_OVERRIDE_PROBABILITY', 0.3, float, 0.0, 1.0
            ),
            'WHEEL_COMMIT_MAX_RETRIES': self._read_number('WHEEL_COMMIT_MAX_RETRIES', 3, int, 1, 20),
        }

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If critical configuration is missing in production
        """
        config = {}

        try:
            config['JWT_SECRET_KEY'], config['JWT_ACCESS_TOKEN_EXPIRES'], config['JWT_REFRESH_TOKEN_EXPIRES'] = self.validate_jwt_config()
            config['SQLALCHEMY_DATABASE_URI'] = self.validate_database_config()
            config['SERVICE_API_TOKEN'] = self.validate_service_config()
            config['RATELIMIT_STORAGE_URI'] = self.validate_rate_limiting_config()
            config['CORS_ORIGINS'] = self.validate_cors_config()
            config.update(self.validate_wheel_config())

            config['DEBUG'] = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 't')
            config['JWT_COOKIE_SECURE'] = os.getenv('JWT_COOKIE_SECURE', 'True').lower() in ('true', '1', 't')
            config['WHEEL_ENABLED'] = os.getenv('WHEEL_ENABLED', 'True').lower() in ('true', '1', 't')

            if self.is_production:
                if config['DEBUG']:
                    self.errors.append("CRITICAL: DEBUG mode must be disabled in production (set FLASK_DEBUG=False)")

                if not config['JWT_COOKIE_SECURE']:
                    self.errors.append("CRITICAL: JWT cookies must be secure in production (set JWT_COOKIE_SECURE=True)")

            if self.errors:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
                if self.warnings:
                    error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
                raise ConfigValidationError(error_msg)

            for warning in self.warnings:
                warnings.warn(warning, UserWarning)

            return config

        except Exception as e:
            if isinstance(e, ConfigValidationError):
                raise
            raise ConfigValidationError(f"Configuration validation error: {str(e)}") from e


def validate_production_config() -> dict:
    """
    Validate configuration with fail-fast behavior.

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        validator = ConfigValidator()
        return validator.validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nHow to fix:", file=sys.stderr)
        print("1. Set required environment variables", file=sys.stderr)
        print("2. Check WHEEL_* tunables are numeric and in range", file=sys.stderr)
        print("3. Review production deployment checklist", file=sys.stderr)
        print("\nApplication startup ABORTED\n", file=sys.stderr)
        sys.exit(1)
