"""Exceptions for the POS service layer."""


class PosApiError(Exception):
    """Error response from the POS backend."""

    def __init__(self, status: int, message: str | None = None, errors: dict | None = None):
        self.status = status
        self.message = message
        self.errors = errors
        super().__init__(message or "API request failed")


class SessionExpired(PosApiError):
    """Backend rejected the bearer token (HTTP 401)."""

    def __init__(self, message: str = "Session expired. Please login again.", errors: dict | None = None):
        super().__init__(401, message, errors)


class PosApiUnavailable(Exception):
    """POS backend could not be reached."""

    pass


class PosApiTimeout(PosApiUnavailable):
    """POS backend did not answer within the configured timeout."""

    pass


class SystemServiceError(Exception):
    """Local device service returned an error or malformed data."""

    def __init__(self, message: str, status: int = 400):
        self.message = message
        self.status = status
        super().__init__(message)


class SystemServiceUnavailable(SystemServiceError):
    """Local device service is not running or timed out."""

    def __init__(self, message: str, status: int = 503):
        super().__init__(message, status)


class DeviceNotConfigured(Exception):
    """No device id could be read for this terminal."""

    def __init__(self, message: str = "Unable to get system device ID. Please try again."):
        self.message = message
        super().__init__(message)


class TransactionValidationError(ValueError):
    """Transaction data failed validation before submission."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InsufficientPayment(TransactionValidationError):
    """Amount tendered is below the amount due."""

    def __init__(self, message: str = "Payment amount is less than total amount required."):
        super().__init__(message)
