"""Application error taxonomy.

Every failure that reaches a client is one of these (or is converted into one by the handlers
registered in ``datamarket.main``), rendered as ``{success: false, message, errors?}``.
"""

from __future__ import annotations


class AppError(Exception):
    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[str] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = list(errors) if errors else None
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"


class ConflictError(AppError):
    status_code = 400
    default_message = "Conflict"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized access"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Access forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"
