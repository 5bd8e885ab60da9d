"""User-facing messages for service-layer failures."""

from .exceptions import (
    DeviceNotConfigured,
    PosApiError,
    PosApiTimeout,
    PosApiUnavailable,
    SessionExpired,
    SystemServiceError,
    TransactionValidationError,
)

SESSION_EXPIRED = "Session expired. Please login again."
INVALID_DATA = "Invalid transaction data. Please check all fields."
SERVER_ERROR = "Server error. Please try again later."
TRANSACTION_FAILED = "Transaction failed. Please try again."
NETWORK_ERROR = "Network error. Please check your connection."
REQUEST_TIMEOUT = "Request timeout"
UNEXPECTED_ERROR = "An unexpected error occurred"


def user_message(exc: Exception) -> tuple[str, int]:
    """Map an exception to the message shown to the cashier and an HTTP status."""
    if isinstance(exc, SessionExpired):
        return SESSION_EXPIRED, 401
    if isinstance(exc, PosApiError):
        if exc.message:
            return exc.message, exc.status
        if exc.status == 400:
            return INVALID_DATA, 400
        if exc.status >= 500:
            return SERVER_ERROR, exc.status
        return TRANSACTION_FAILED, exc.status
    if isinstance(exc, PosApiTimeout):
        return REQUEST_TIMEOUT, 504
    if isinstance(exc, PosApiUnavailable):
        return NETWORK_ERROR, 503
    if isinstance(exc, SystemServiceError):
        return exc.message, exc.status
    if isinstance(exc, DeviceNotConfigured):
        return exc.message, 503
    if isinstance(exc, TransactionValidationError):
        return exc.message, 400
    return UNEXPECTED_ERROR, 500
