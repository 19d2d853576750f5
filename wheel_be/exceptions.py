from wheel_be.error_codes import ErrorCodes

class AppException(Exception):
    def __init__(self, error_code, status_message, status_code, details=None, action_button=None):
        super().__init__(status_message)
        self.error_code = error_code
        self.status_message = status_message
        self.status_code = status_code
        self.details = details if details is not None else {}
        self.action_button = action_button if action_button is not None else {}

class ValidationException(AppException):
    def __init__(self, status_message="Validation failed", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.VALIDATION_ERROR,
            status_message=status_message,
            status_code=422,
            details=details,
            action_button=action_button
        )

class AuthenticationException(AppException):
    def __init__(self, status_message="Authentication required", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.UNAUTHENTICATED,
            status_message=status_message,
            status_code=401,
            details=details,
            action_button=action_button
        )

class NotFoundException(AppException):
    def __init__(self, status_message="Resource not found", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.NOT_FOUND,
            status_message=status_message,
            status_code=404,
            details=details,
            action_button=action_button
        )

class InternalServerErrorException(AppException):
    def __init__(self, status_message="Internal server error", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INTERNAL_SERVER_ERROR,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )

class InvalidBudgetConfigException(AppException):
    def __init__(self, status_message="Invalid budget configuration", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.INVALID_BUDGET_CONFIG,
            status_message=status_message,
            status_code=400,
            details=details,
            action_button=action_button
        )

# --- Spin rejections ---

class CampaignNotLiveException(AppException):
    def __init__(self, status_message="Wheel unavailable", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.CAMPAIGN_NOT_LIVE,
            status_message=status_message,
            status_code=409,
            details=details,
            action_button=action_button
        )

class RateLimitExceededException(AppException):
    """Raised when a user has used up the spins allowed in the trailing window.

    ``reset_at`` is the moment the oldest counted spin leaves the window.
    """
    def __init__(self, reset_at=None, status_message=None, details=None, action_button=None):
        self.reset_at = reset_at
        if status_message is None:
            if reset_at is not None:
                status_message = f"Spin limit reached. Next spin available at {reset_at.isoformat()}"
            else:
                status_message = "Spin limit reached"
        details = dict(details or {})
        if reset_at is not None:
            details.setdefault('reset_at', reset_at.isoformat())
        super().__init__(
            error_code=ErrorCodes.SPIN_RATE_LIMITED,
            status_message=status_message,
            status_code=429,
            details=details,
            action_button=action_button
        )

class NoEligibleSlicesException(AppException):
    # The catalog invariant guarantees a zero-cost slice, so reaching this is a configuration fault.
    def __init__(self, status_message="The wheel is temporarily unavailable", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.NO_ELIGIBLE_SLICES,
            status_message=status_message,
            status_code=500,
            details=details,
            action_button=action_button
        )

class BudgetRaceLostException(AppException):
    def __init__(self, status_message="Budget changed during spin", details=None, action_button=None):
        super().__init__(
            error_code=ErrorCodes.BUDGET_RACE_LOST,
            status_message=status_message,
            status_code=409,
            details=details,
            action_button=action_button
        )
