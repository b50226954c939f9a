"""
Payment-specific exceptions for billing and webhook operations.

This module provides a hierarchy of exceptions for the payment service,
covering webhook authentication, event decoding, checkout configuration,
the database service and the Stripe billing gateway.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── SignatureInvalidError - Webhook signature missing or mismatched
    ├── InvalidEventError - Webhook payload is not a well-formed event
    ├── InvalidPlanError - Plan type has no configured price
    └── PaymentProcessingError - Billing provider failures
        └── StripeError - Base for all Stripe errors
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            └── StripeAPIUnavailableError - API unavailable (transient, retry)

    DatabaseServiceError (ExternalServiceError) - Database service 4xx/5xx
    └── RecordNotFoundError - Database service returned 404
    DatabaseServiceUnavailableError (UpstreamUnavailableError) - Unreachable

Usage:
    from payments.exceptions import InvalidPlanError, SignatureInvalidError

    price_id = config.price_id_for(plan_type)
    if not price_id:
        raise InvalidPlanError(
            f"Unknown plan type: {plan_type}",
            details={"plan_type": plan_type},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ExternalServiceError,
    NotFoundError,
    UpstreamUnavailableError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            processor.process(payload, headers)
        except PaymentError as e:
            logger.error(f"Payment operation failed: {e}")
            return JsonResponse({"error": e.message}, status=400)
    """

    default_error_code: str = "PAYMENT_ERROR"


class SignatureInvalidError(PaymentError):
    """
    Raised when a webhook's signature is missing, malformed or mismatched.

    Verification runs on the untouched request bytes; any re-serialization
    of the body before verification produces this error. No side effect
    has happened when it is raised, so the provider may safely redeliver.
    """

    default_error_code: str = "SIGNATURE_INVALID"


class InvalidEventError(PaymentError):
    """
    Raised when a webhook payload is not a well-formed billing event.

    Use for:
    - Body is not valid JSON (test-mode verifier)
    - Missing id, type, data or data.object
    - data.object is not an object
    """

    default_error_code: str = "INVALID_EVENT"


class InvalidPlanError(PaymentError):
    """
    Raised when a requested plan type has no configured price id.

    Example:
        raise InvalidPlanError(
            "Unknown plan type: yearly",
            details={"plan_type": "yearly", "configured": ["MONTHLY"]},
        )
    """

    default_error_code: str = "INVALID_PLAN"


class PaymentProcessingError(PaymentError):
    """Raised when the billing provider fails to process a request."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Provides common attributes for Stripe error handling:
    - stripe_code: Stripe's internal error code
    - is_retryable: Whether the operation can be retried

    Example:
        try:
            gateway.retrieve_subscription(subscription_id)
        except StripeError as e:
            if e.is_retryable:
                return JsonResponse({"error": e.message}, status=503)
            raise
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code


class StripeInvalidRequestError(StripeError):
    """
    Invalid request parameters sent to Stripe, or unknown resource.

    This is a permanent error - the request will never succeed with the
    same parameters. A subscription id that does not exist lands here
    with stripe_code "resource_missing".
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"
    is_retryable: bool = False


class StripeCardDeclinedError(StripeError):
    """
    Card was declined by the issuing bank.

    Only reachable from operations that charge immediately; checkout
    sessions collect payment on the provider's hosted page.
    """

    default_error_code: str = "CARD_DECLINED"
    is_retryable: bool = False


class StripeRateLimitError(StripeError):
    """
    Rate limited by Stripe API.

    Retry Strategy:
    - Use exponential backoff starting at 1 second
    - Let the provider redeliver webhooks rather than retrying inline
    """

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """
    Stripe API is temporarily unavailable.

    This covers:
    - Network connectivity issues
    - Stripe server errors (5xx)
    - DNS resolution failures
    - Timeouts
    """

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


# =============================================================================
# Database Service Exceptions
# =============================================================================


class DatabaseServiceError(ExternalServiceError):
    """
    The database service answered with an error status.

    The downstream status and body are carried untouched so callers can
    decide what to do; this service never retries database writes.

    Attributes:
        status_code: HTTP status returned by the database service
        response_body: Parsed JSON body (or raw text) of the error response
    """

    default_error_code: str = "DATABASE_SERVICE_ERROR"

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


class RecordNotFoundError(DatabaseServiceError, NotFoundError):
    """
    The database service returned 404 for a user or subscription lookup.

    Example:
        try:
            user = db.get_user_by_email(email)
        except RecordNotFoundError:
            logger.error("No internal user for checkout email")
            raise
    """

    default_error_code: str = "RECORD_NOT_FOUND"


class DatabaseServiceUnavailableError(UpstreamUnavailableError):
    """The database service could not be reached (refused, timeout, DNS)."""

    default_error_code: str = "DATABASE_SERVICE_UNAVAILABLE"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "SignatureInvalidError",
    "InvalidEventError",
    "InvalidPlanError",
    "PaymentProcessingError",
    # Stripe-specific
    "StripeError",
    "StripeInvalidRequestError",
    "StripeCardDeclinedError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    # Database service
    "DatabaseServiceError",
    "RecordNotFoundError",
    "DatabaseServiceUnavailableError",
]
