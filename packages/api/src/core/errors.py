# This project was developed with assistance from AI tools.
"""Application error hierarchy.

Services raise these; the handlers in ``main.py`` turn them into RFC 7807
responses carrying ``status_code``. ``is_operational`` is False only for
failures the caller cannot act on, whose message is hidden in production.
"""

from typing import Any


class AppError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"
    is_operational: bool = True

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource already exists"


class NotImplementedFeatureError(AppError):
    """A feature exists but is switched off in this deployment."""

    status_code = 501
    default_message = "Feature is not enabled"


class InternalServerError(AppError):
    status_code = 500
    default_message = "Internal server error"
    is_operational = False
