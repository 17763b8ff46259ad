# errors.py
from typing import Any, Optional


class AppError(Exception):
    """Base error carrying the HTTP status and envelope fields for a failed request."""

    status_code = 500
    error = "error"

    def __init__(self, message: str, error: Optional[str] = None, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error
        self.data = data

    def to_envelope(self) -> dict:
        body = {"success": False, "message": self.message, "error": self.error}
        if self.data is not None:
            body["data"] = self.data
        return body


class ValidationError(AppError):
    status_code = 400
    error = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    error = "not_found"


class ForbiddenError(AppError):
    status_code = 403
    error = "forbidden"


class ExpiredError(AppError):
    # Kept at 400 like other input errors; clients tell it apart by `error`.
    status_code = 400
    error = "assignment_expired"
