"""
Application error taxonomy rendered by the HTTP layer.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class ValidationError(AppError):
    status_code = 400


class AIServiceError(AppError):
    status_code = 503


class TransportError(AIServiceError):
    """Completion-provider call failed; *error_type* is a short machine tag."""

    error_type = "http_error"

    def __init__(self, message: str, status: Optional[int] = None, details: Any = None):
        super().__init__(message, details=details)
        self.status = status


class UnauthorizedError(TransportError):
    error_type = "unauthorized"


class RateLimitedError(TransportError):
    error_type = "rate_limit"

    def __init__(self, message: str, status: Optional[int] = 429, retry_after: Optional[float] = None, details: Any = None):
        super().__init__(message, status=status, details=details)
        self.retry_after = retry_after


class ServiceUnavailableError(TransportError):
    error_type = "service_unavailable"


class NetworkUnreachableError(TransportError):
    error_type = "network_unreachable"


class ConfigurationError(TransportError):
    error_type = "configuration"


def classify_status(status: int, message: str, details: Any = None) -> TransportError:
    """Map a non-2xx provider status to its TransportError."""
    if status == 401:
        return UnauthorizedError("Invalid API key", status=status, details=details)
    if status == 429:
        return RateLimitedError("Rate limit exceeded", status=status, details=details)
    if status >= 500:
        return ServiceUnavailableError("AI service unavailable", status=status, details=details)
    return TransportError(f"AI service error: {message}", status=status, details=details)
