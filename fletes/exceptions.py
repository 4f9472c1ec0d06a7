"""Domain errors raised by the dispatch services.

Each error carries a stable ``code`` that the HTTP layer returns to clients,
so a driver app can tell a wait-state (``NOT_YET_AVAILABLE``) apart from a
rejected request.
"""

from datetime import datetime
from typing import Any

from fastapi import status


class DispatchError(Exception):
    """Base class for all dispatch errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "DISPATCH_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for an API response."""
        return {"error": self.code, "detail": self.message}


class ValidationError(DispatchError):
    """Malformed or disallowed input. Never retried automatically."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_INPUT"


class NotAvailableError(DispatchError):
    """The start window of a pending job has not opened yet."""

    status_code = status.HTTP_409_CONFLICT
    code = "NOT_YET_AVAILABLE"

    def __init__(self, message: str, available_at: datetime | None = None):
        super().__init__(message)
        self.available_at = available_at

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["available_at"] = self.available_at.isoformat() if self.available_at else None
        return data


class NotFoundError(DispatchError):
    """Unknown job or driver id."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(DispatchError):
    """A unique value is already taken."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
