class ErrorCodes:
    GENERIC_ERROR = "GENERIC_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"

    # Wheel engine
    CAMPAIGN_NOT_LIVE = "CAMPAIGN_NOT_LIVE"
    SPIN_RATE_LIMITED = "SPIN_RATE_LIMITED"
    NO_ELIGIBLE_SLICES = "NO_ELIGIBLE_SLICES"
    BUDGET_RACE_LOST = "BUDGET_RACE_LOST"
    INVALID_BUDGET_CONFIG = "INVALID_BUDGET_CONFIG"
    OUTCOME_TAMPERING = "OUTCOME_TAMPERING"
