"""
Exceptions raised while dispatching lifecycle notifications.

Exception Hierarchy:
    NotificationError (base, catch this to treat delivery as best-effort)
    ├── InvalidRecipientError - Email empty or without "@" (no retry)
    ├── UnknownCategoryError - Category outside the known set (no retry)
    ├── NotificationRejectedError - Service answered 4xx/5xx (no retry)
    └── NotificationServiceUnavailableError - Refused/timeout/DNS (retried)

Usage:
    from notifications.exceptions import NotificationError

    try:
        dispatcher.send(email, NotificationCategory.RENEWED, data)
    except NotificationError as e:
        logger.warning("Notification not delivered", extra={"error": e.message})
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ExternalServiceError,
    UpstreamUnavailableError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class NotificationError(BaseApplicationError):
    """Base exception for notification dispatch failures."""

    default_error_code: str = "NOTIFICATION_ERROR"


class InvalidRecipientError(NotificationError, ValidationError):
    """Recipient email is empty or not an address."""

    default_error_code: str = "INVALID_RECIPIENT"


class UnknownCategoryError(NotificationError, ValidationError):
    """Category has no notification endpoint."""

    default_error_code: str = "UNKNOWN_CATEGORY"


class NotificationRejectedError(NotificationError, ExternalServiceError):
    """
    The notification service answered with an error status.

    Validation errors will not succeed on a second attempt, so these are
    never retried.
    """

    default_error_code: str = "NOTIFICATION_REJECTED"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.response_body = response_body


class NotificationServiceUnavailableError(NotificationError, UpstreamUnavailableError):
    """
    The notification service could not be reached.

    Raised per attempt by the dispatcher, and once more after the final
    attempt with details["attempts"] set.
    """

    default_error_code: str = "NOTIFICATION_SERVICE_UNAVAILABLE"


__all__ = [
    "NotificationError",
    "InvalidRecipientError",
    "UnknownCategoryError",
    "NotificationRejectedError",
    "NotificationServiceUnavailableError",
]
