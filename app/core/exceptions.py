"""
Base exception classes for service-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent JSON error responses across the service
- Machine-readable error codes for callers
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    └── ExternalServiceError - Downstream service failures
        └── UpstreamUnavailableError - Downstream unreachable (refused, timeout, DNS)

Usage:
    from core.exceptions import ValidationError, UpstreamUnavailableError

    # Raise with message only
    raise ValidationError("planType is required")

    # Raise with error code and details
    raise UpstreamUnavailableError(
        "Notification service unreachable",
        error_code="NOTIFICATION_SERVICE_UNAVAILABLE",
        details={"url": url},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=400)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (parsing, serialization).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all service-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, metadata, etc.)

    Example:
        try:
            session = service.create_subscription_session(...)
        except BaseApplicationError as e:
            logger.warning(f"Checkout failed: {e.error_code}")
            return Response(e.to_dict(), status=400)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Unknown plan type: weekly",
                "error_code": "INVALID_PLAN",
                "details": {"plan_type": "weekly"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Missing required fields
    - Malformed identifiers or email addresses
    - Values outside a configured set

    Note:
        For DRF request validation, use serializers.
        Use this for service-layer validation logic.
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected, such as
    a user referenced by email in a checkout event.
    """

    default_error_code: str = "NOT_FOUND"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Billing provider failures
    - Database service errors (4xx/5xx responses)
    - Notification service rejections

    Note:
        Log the original error for debugging but don't expose
        internal details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"


class UpstreamUnavailableError(ExternalServiceError):
    """
    Raised when an external service cannot be reached at all.

    Covers connection refused, timeouts, name resolution failures and
    aborted connections. These are the only failures worth retrying:
    the request may never have arrived.

    Example:
        try:
            response = session.post(url, json=body, timeout=10)
        except requests.ConnectionError as e:
            raise UpstreamUnavailableError(
                "Notification service unreachable",
                details={"url": url, "error": str(e)},
            ) from e
    """

    default_error_code: str = "UPSTREAM_UNAVAILABLE"
    is_retryable: bool = True
