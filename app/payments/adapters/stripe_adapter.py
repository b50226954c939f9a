"""
Stripe API adapter for billing operations.

This module provides the StripeAdapter class which encapsulates all
Stripe API interactions. All Stripe calls should go through this
adapter to ensure consistent error handling, timeouts and observability.

Features:
- Configurable timeout on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- API key passed per call from the injected configuration, no module globals
- Webhook signature verification on the untouched request bytes

Configuration (via PaymentServiceConfig):
- stripe_secret_key: Stripe API secret key
- stripe_webhook_secret: Webhook signing secret
- stripe_api_timeout: API call timeout (default: 10)
- stripe_webhook_tolerance: Max age of a signed webhook (default: 300)

Usage:
    from payments.adapters import StripeAdapter
    from payments.config import get_service_config

    gateway = StripeAdapter(get_service_config())

    customer = gateway.create_customer("a@b.com")
    session = gateway.create_checkout_session(
        customer_id=customer.id,
        price_id="price_monthly",
        success_url="https://app.example.com/subscription/success",
        cancel_url="https://app.example.com/subscription/cancel",
    )

    snapshot = gateway.retrieve_subscription("sub_123")
    snapshot.current_period_end  # aware datetime
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import stripe

from core.helpers import from_timestamp
from payments.exceptions import (
    InvalidEventError,
    SignatureInvalidError,
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidRequestError,
    StripeRateLimitError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from payments.config import PaymentServiceConfig


DEFAULT_PLAN_NAME = "Service Premium"
DEFAULT_CURRENCY = "eur"


# =============================================================================
# Data Types
# =============================================================================


def to_plain_dict(obj: Any) -> dict[str, Any]:
    """
    Convert a Stripe object (or an already-plain mapping) to a dict.

    Stripe objects expose to_dict(); webhook payloads decoded from JSON
    are plain dicts already.
    """
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def minor_to_major(amount: int | None) -> Decimal | None:
    """Convert an amount in the smallest currency unit to currency units."""
    if amount is None:
        return None
    return Decimal(amount) / Decimal(100)


@dataclass
class CustomerResult:
    """
    Result from Stripe Customer operations.

    Attributes:
        id: Customer ID (cus_xxx)
        email: Customer email (None for deleted customers)
        deleted: Whether Stripe reports the customer as deleted
        metadata: Attached metadata
        raw_response: Full Stripe response dict (for debugging)
    """

    id: str
    email: str | None = None
    deleted: bool = False
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubscriptionSnapshot:
    """
    Typed view over a Stripe Subscription.

    Built both from API responses and from webhook event payloads, so the
    same field rules apply everywhere:
    - Period bounds come from the subscription, falling back to the first
      subscription item (newer API versions only carry them there)
    - plan_name comes from the expanded product, DEFAULT_PLAN_NAME otherwise
    - amount is in currency units (unit_amount / 100)
    - currency falls back to DEFAULT_CURRENCY

    Attributes:
        id: Subscription ID (sub_xxx)
        customer_id: Customer ID (cus_xxx)
        status: Stripe lifecycle status (active, past_due, canceled, ...)
        cancel_at_period_end: Whether cancellation is scheduled
        cancel_at: Scheduled cancellation time, if any
        current_period_start: Start of the current billing period
        current_period_end: End of the current billing period
        ended_at: When the subscription ended, if it has
        plan_name: Product name of the first subscription item
        amount: Unit amount of the first item, in currency units
        currency: ISO currency code (lower case)
        raw_response: Full Stripe response dict
    """

    id: str
    customer_id: str | None = None
    status: str | None = None
    cancel_at_period_end: bool = False
    cancel_at: datetime | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    ended_at: datetime | None = None
    plan_name: str = DEFAULT_PLAN_NAME
    amount: Decimal | None = None
    currency: str = DEFAULT_CURRENCY
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def auto_renew(self) -> bool:
        return not self.cancel_at_period_end

    @property
    def effective_end(self) -> datetime | None:
        """When access ends: the scheduled cancellation, else the period end."""
        return self.cancel_at or self.current_period_end

    @classmethod
    def from_stripe(cls, obj: Any) -> SubscriptionSnapshot:
        """
        Build a snapshot from a Stripe Subscription object or plain dict.

        Args:
            obj: stripe.Subscription, or the data.object of a webhook event

        Returns:
            SubscriptionSnapshot with defaults applied for missing fields
        """
        data = to_plain_dict(obj)
        items = (data.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        price = first_item.get("price") or {}
        product = price.get("product")

        plan_name = None
        if isinstance(product, dict):
            plan_name = product.get("name")

        period_start = data.get("current_period_start")
        if period_start is None:
            period_start = first_item.get("current_period_start")
        period_end = data.get("current_period_end")
        if period_end is None:
            period_end = first_item.get("current_period_end")

        customer = data.get("customer")
        if isinstance(customer, dict):
            customer = customer.get("id")

        return cls(
            id=data["id"],
            customer_id=customer,
            status=data.get("status"),
            cancel_at_period_end=bool(data.get("cancel_at_period_end")),
            cancel_at=from_timestamp(data.get("cancel_at")),
            current_period_start=from_timestamp(period_start),
            current_period_end=from_timestamp(period_end),
            ended_at=from_timestamp(data.get("ended_at")),
            plan_name=plan_name or DEFAULT_PLAN_NAME,
            amount=minor_to_major(price.get("unit_amount")),
            currency=data.get("currency") or price.get("currency") or DEFAULT_CURRENCY,
            raw_response=data,
        )


@dataclass
class CheckoutSessionResult:
    """
    Result from creating a Stripe Checkout Session.

    Attributes:
        id: Checkout Session ID (cs_xxx)
        url: Hosted checkout page to redirect the customer to
        customer_id: Customer the session is bound to
    """

    id: str
    url: str | None
    customer_id: str


@dataclass
class PlanResult:
    """
    A recurring price offered for subscription, with its product.

    Attributes:
        id: Price ID (price_xxx)
        product_id: Product ID (prod_xxx)
        name: Product name
        description: Product description
        amount: Unit amount in currency units
        currency: ISO currency code
        interval: Billing interval (month, year)
        interval_count: Number of intervals between billings
    """

    id: str
    product_id: str | None
    name: str | None
    description: str | None
    amount: Decimal | None
    currency: str
    interval: str | None
    interval_count: int | None

    @classmethod
    def from_stripe(cls, obj: Any) -> PlanResult:
        data = to_plain_dict(obj)
        product = data.get("product")
        if not isinstance(product, dict):
            product = {"id": product}
        recurring = data.get("recurring") or {}
        return cls(
            id=data["id"],
            product_id=product.get("id"),
            name=product.get("name"),
            description=product.get("description"),
            amount=minor_to_major(data.get("unit_amount")),
            currency=data.get("currency") or DEFAULT_CURRENCY,
            interval=recurring.get("interval"),
            interval_count=recurring.get("interval_count"),
        )


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    One instance per configuration. The API key is passed on every call
    rather than assigned to the stripe module, so several adapters (for
    example in tests) never interfere. Thread-safe for use from Celery
    workers.

    Features:
    - Configurable timeout on all API calls
    - Automatic error translation to domain exceptions
    - Structured logging with timing metrics

    Usage:
        gateway = StripeAdapter(config)
        snapshot = gateway.retrieve_subscription("sub_123")
    """

    SUBSCRIPTION_EXPAND = ["items.data.price.product"]

    def __init__(self, config: PaymentServiceConfig):
        self.config = config
        self._configure_stripe()

    # =========================================================================
    # Configuration
    # =========================================================================

    def _configure_stripe(self) -> None:
        """Configure the shared HTTP client with the API timeout."""
        stripe.default_http_client = stripe.RequestsClient(
            timeout=self.config.stripe_api_timeout
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def _execute(
        self,
        log_context: dict[str, Any],
        call: Callable[[], Any],
    ) -> Any:
        """
        Run one Stripe call with timing, logging and error translation.

        Args:
            log_context: Structured logging context (must include "operation")
            call: Zero-argument callable issuing the Stripe request

        Returns:
            The Stripe response object

        Raises:
            StripeError subclass translated from the SDK exception
        """
        logger = self.get_logger()
        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            response = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_stripe_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Stripe operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return response

    # =========================================================================
    # Customers
    # =========================================================================

    def create_customer(self, email: str) -> CustomerResult:
        """
        Create a Stripe Customer for a subscriber.

        The email doubles as the userId metadata until the user record
        is linked.

        Args:
            email: Customer email

        Returns:
            CustomerResult with the new customer id

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeAPIUnavailableError: Stripe service unavailable
        """
        customer = self._execute(
            {"operation": "create_customer"},
            lambda: stripe.Customer.create(
                email=email,
                metadata={"userId": email},
                api_key=self.config.stripe_secret_key,
            ),
        )
        raw = to_plain_dict(customer)
        return CustomerResult(
            id=raw["id"],
            email=raw.get("email"),
            metadata=dict(raw.get("metadata") or {}),
            raw_response=raw,
        )

    def retrieve_customer(self, customer_id: str) -> CustomerResult:
        """
        Retrieve a Stripe Customer.

        Args:
            customer_id: Customer ID (cus_xxx)

        Returns:
            CustomerResult; email is None for deleted customers

        Raises:
            StripeInvalidRequestError: Customer does not exist
            StripeAPIUnavailableError: Stripe service unavailable
        """
        customer = self._execute(
            {"operation": "retrieve_customer", "customer_id": customer_id},
            lambda: stripe.Customer.retrieve(
                customer_id,
                api_key=self.config.stripe_secret_key,
            ),
        )
        raw = to_plain_dict(customer)
        return CustomerResult(
            id=raw["id"],
            email=raw.get("email"),
            deleted=bool(raw.get("deleted")),
            metadata=dict(raw.get("metadata") or {}),
            raw_response=raw,
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def retrieve_subscription(self, subscription_id: str) -> SubscriptionSnapshot:
        """
        Retrieve a Subscription with its price and product expanded.

        Args:
            subscription_id: Subscription ID (sub_xxx)

        Returns:
            SubscriptionSnapshot

        Raises:
            StripeInvalidRequestError: Subscription does not exist
            StripeAPIUnavailableError: Stripe service unavailable
        """
        subscription = self._execute(
            {"operation": "retrieve_subscription", "subscription_id": subscription_id},
            lambda: stripe.Subscription.retrieve(
                subscription_id,
                expand=self.SUBSCRIPTION_EXPAND,
                api_key=self.config.stripe_secret_key,
            ),
        )
        return SubscriptionSnapshot.from_stripe(subscription)

    def cancel_subscription_at_period_end(
        self, subscription_id: str
    ) -> SubscriptionSnapshot:
        """
        Schedule a Subscription to end with its current billing period.

        The subscription stays active until then; Stripe follows up with a
        customer.subscription.updated webhook.

        Args:
            subscription_id: Subscription ID (sub_xxx)

        Returns:
            SubscriptionSnapshot after the update
        """
        subscription = self._execute(
            {
                "operation": "cancel_subscription_at_period_end",
                "subscription_id": subscription_id,
            },
            lambda: stripe.Subscription.modify(
                subscription_id,
                cancel_at_period_end=True,
                api_key=self.config.stripe_secret_key,
            ),
        )
        return SubscriptionSnapshot.from_stripe(subscription)

    # =========================================================================
    # Checkout & Plans
    # =========================================================================

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session in subscription mode.

        Args:
            customer_id: Customer the subscription is created for
            price_id: Recurring price to subscribe to (quantity 1)
            success_url: Redirect after successful payment
            cancel_url: Redirect when the customer abandons checkout

        Returns:
            CheckoutSessionResult with the session id and redirect URL
        """
        session = self._execute(
            {
                "operation": "create_checkout_session",
                "customer_id": customer_id,
                "price_id": price_id,
            },
            lambda: stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{"price": price_id, "quantity": 1}],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                api_key=self.config.stripe_secret_key,
            ),
        )
        raw = to_plain_dict(session)
        return CheckoutSessionResult(
            id=raw["id"],
            url=raw.get("url"),
            customer_id=customer_id,
        )

    def list_plans(self, limit: int = 10) -> list[PlanResult]:
        """
        List active recurring prices with their products expanded.

        Args:
            limit: Maximum number of prices (default: 10)

        Returns:
            List of PlanResult, in Stripe's order
        """
        prices = self._execute(
            {"operation": "list_plans", "limit": limit},
            lambda: stripe.Price.list(
                active=True,
                type="recurring",
                limit=limit,
                expand=["data.product"],
                api_key=self.config.stripe_secret_key,
            ),
        )
        return [PlanResult.from_stripe(price) for price in prices.data]

    # =========================================================================
    # Webhooks
    # =========================================================================

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes, exactly as received
            signature: Stripe-Signature header value

        Returns:
            Parsed event data dict

        Raises:
            SignatureInvalidError: Missing secret or signature, or mismatch
            InvalidEventError: Payload is not valid JSON
        """
        logger = self.get_logger()

        if not self.config.stripe_webhook_secret:
            raise SignatureInvalidError("Webhook signing secret is not configured")
        if not signature:
            raise SignatureInvalidError("Missing Stripe-Signature header")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                self.config.stripe_webhook_secret,
                tolerance=self.config.stripe_webhook_tolerance,
                api_key=self.config.stripe_secret_key,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(
                "Webhook signature verification failed",
                extra={"error": str(e)},
            )
            raise SignatureInvalidError(
                "Invalid webhook signature",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise InvalidEventError(
                "Webhook payload is not valid JSON",
                details={"error": str(e)},
            ) from e

        return to_plain_dict(event)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to domain exceptions.

        Maps Stripe SDK errors to appropriate domain exceptions
        with proper error categorization for retry decisions.

        Args:
            error: The Stripe exception
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            StripeCardDeclinedError: Card was declined
            StripeInvalidRequestError: Invalid request or authentication
            StripeRateLimitError: Rate limited
            StripeAPIUnavailableError: API unavailable or unexpected error
        """
        logger = cls.get_logger()

        # Add timing to context
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": getattr(error, "decline_code", None)},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.InvalidRequestError):
            # Invalid parameters or resource not found
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            raise StripeInvalidRequestError(
                str(error.user_message or error),
                stripe_code=error.code,
            ) from error

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        elif isinstance(error, stripe.AuthenticationError):
            # Invalid API key - permanent, operational issue
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        elif isinstance(error, stripe.StripeError):
            # Stripe server error - retry with backoff
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise StripeAPIUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            ) from error

