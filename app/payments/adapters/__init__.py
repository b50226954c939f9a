"""
Adapters for the external services the payment service talks to.

This module provides adapters for the Stripe billing gateway and the
internal database service. All outbound billing and record-keeping calls
should go through these adapters to ensure consistent error handling,
timeouts and observability.

Usage:
    from payments.adapters import DatabaseServiceClient, StripeAdapter

    gateway = StripeAdapter(config)
    snapshot = gateway.retrieve_subscription("sub_123")

    db = DatabaseServiceClient(config)
    record = db.find_subscription_by_stripe_id(snapshot.id)
"""

from payments.adapters.database_service import DatabaseServiceClient
from payments.adapters.stripe_adapter import (
    DEFAULT_CURRENCY,
    DEFAULT_PLAN_NAME,
    CheckoutSessionResult,
    CustomerResult,
    PlanResult,
    StripeAdapter,
    SubscriptionSnapshot,
)

__all__ = [
    "DEFAULT_CURRENCY",
    "DEFAULT_PLAN_NAME",
    "CheckoutSessionResult",
    "CustomerResult",
    "DatabaseServiceClient",
    "PlanResult",
    "StripeAdapter",
    "SubscriptionSnapshot",
]
