"""
Application exceptions

Services raise these; main.py renders them as JSON error envelopes with the
matching HTTP status code.
"""
from typing import Dict, Any


class AppError(Exception):
    """Base exception for business and integration errors."""

    def __init__(
        self,
        message: str,
        code: str = "APP_ERROR",
        status_code: int = 500,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AppError):
    """Raised when a tenant-scoped resource does not exist."""

    def __init__(self, message: str, code: str = "NOT_FOUND", details: Dict[str, Any] = None):
        super().__init__(message, code, 404, details)


class ValidationError(AppError):
    """Raised when request data fails a business rule."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Dict[str, Any] = None):
        super().__init__(message, code, 400, details)


class ConflictError(AppError):
    """Raised when a resource already exists."""

    def __init__(self, message: str, code: str = "CONFLICT", details: Dict[str, Any] = None):
        super().__init__(message, code, 400, details)


class AuthenticationError(AppError):
    def __init__(self, message: str, code: str = "AUTH_REQUIRED", details: Dict[str, Any] = None):
        super().__init__(message, code, 401, details)



class IntegrationError(AppError):
    """Raised when a call to an external platform fails."""

    def __init__(self, message: str, code: str = "INTEGRATION_ERROR", status_code: int = 502,
                 details: Dict[str, Any] = None):
        super().__init__(message, code, status_code, details)
