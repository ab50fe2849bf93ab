"""
Application error types.
Each error carries the HTTP status the API layer responds with.
"""

from typing import List, Optional


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class ValidationError(AppError):
    """Invalid inbound payload."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message, details={"errors": errors or []})

    @property
    def errors(self) -> List[str]:
        return self.details["errors"]


class AuthenticationError(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RateLimitError(AppError):
    status_code = 429

    def __init__(self, message: str = "Too many requests", retry_after: int = 60):
        super().__init__(message, details={"retry_after": retry_after})

    @property
    def retry_after(self) -> int:
        return self.details["retry_after"]


class ExternalServiceError(AppError):
    """A third-party API (LLM, Sheets, Drive) failed."""

    status_code = 503

    def __init__(self, service: str, message: str, details: Optional[dict] = None):
        super().__init__(f"{service} error: {message}", details={"service": service, **(details or {})})


class ConfigurationError(AppError):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, details={"type": "configuration"})
