"""
Subscription session service.

This module provides the SubscriptionSessionService class for:
- Starting a subscription purchase via hosted Stripe Checkout
- Reading a subscription's billing status
- Scheduling cancellation at period end
- Listing the plans offered for subscription

Related files:
    - adapters/stripe_adapter.py: Stripe API calls
    - webhooks/handlers.py: Reconciliation after checkout completes
    - views.py: JSON API

Configuration:
    Plan types map to Stripe price ids through PaymentServiceConfig:
    - STRIPE_MONTHLY_PLAN_ID: price for plan type "monthly"
    - STRIPE_YEARLY_PLAN_ID: price for plan type "yearly"

Usage:
    from payments.services import get_session_service

    session = get_session_service().create_subscription_session(
        customer_id=None,
        plan_type="monthly",
        email="a@b.com",
        success_url="https://example.com/success",
        cancel_url="https://example.com/cancel",
    )
    redirect(session.url)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core.helpers import isoformat, mask_email
from core.services import BaseService
from payments.exceptions import InvalidPlanError

if TYPE_CHECKING:
    from payments.adapters import PlanResult, StripeAdapter
    from payments.config import PaymentServiceConfig


@dataclass
class SubscriptionSession:
    """
    A started subscription purchase.

    Attributes:
        customer_id: Stripe customer the subscription will belong to
        session_id: Checkout Session ID (cs_xxx)
        url: Hosted checkout page
    """

    customer_id: str
    session_id: str
    url: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "customerId": self.customer_id,
            "sessionId": self.session_id,
            "url": self.url,
        }


class SubscriptionSessionService(BaseService):
    """
    Subscription operations initiated by the client application.

    Methods:
        create_subscription_session: Start hosted checkout for a plan
        get_subscription_status: Current status and period end
        cancel_subscription: Cancel at the end of the current period
        list_plans: Active recurring prices
    """

    def __init__(self, config: PaymentServiceConfig, gateway: StripeAdapter):
        self.config = config
        self.gateway = gateway

    def create_subscription_session(
        self,
        customer_id: str | None,
        plan_type: str,
        email: str,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> SubscriptionSession:
        """
        Start a subscription purchase.

        A Stripe customer is created for email when customer_id is not
        given. Redirect URLs default to the client application's
        /subscription/success and /subscription/cancel pages.

        Args:
            customer_id: Existing Stripe customer, or None
            plan_type: "monthly" or "yearly" (case-insensitive)
            email: Subscriber email
            success_url: Redirect after payment
            cancel_url: Redirect when checkout is abandoned

        Returns:
            SubscriptionSession with the redirect URL

        Raises:
            InvalidPlanError: plan_type has no configured price id
            StripeError: Customer or session creation failed
        """
        logger = self.get_logger()

        price_id = self.config.price_id_for(plan_type)
        if not price_id:
            raise InvalidPlanError(
                f"Invalid subscription plan: {plan_type}",
                details={
                    "plan_type": plan_type,
                    "configured": sorted(self.config.plan_price_ids),
                },
            )

        if not customer_id:
            customer_id = self.gateway.create_customer(email).id

        session = self.gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url or self.config.default_success_url,
            cancel_url=cancel_url or self.config.default_cancel_url,
        )

        logger.info(
            "Subscription session created",
            extra={
                "customer_id": customer_id,
                "session_id": session.id,
                "plan_type": plan_type.upper(),
                "email": mask_email(email),
            },
        )

        return SubscriptionSession(
            customer_id=customer_id,
            session_id=session.id,
            url=session.url,
        )

    def get_subscription_status(self, subscription_id: str) -> dict[str, Any]:
        """Return {status, currentPeriodEnd, cancelAtPeriodEnd}."""
        snapshot = self.gateway.retrieve_subscription(subscription_id)
        return {
            "status": snapshot.status,
            "currentPeriodEnd": isoformat(snapshot.current_period_end),
            "cancelAtPeriodEnd": snapshot.cancel_at_period_end,
        }

    def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        """
        Schedule cancellation at the end of the current period.

        Internal records are not touched here; the customer.subscription.updated
        webhook Stripe sends next drives reconciliation and notification.

        Returns:
            {success, cancelAtPeriodEnd, currentPeriodEnd}
        """
        snapshot = self.gateway.cancel_subscription_at_period_end(subscription_id)
        self.get_logger().info(
            "Subscription cancellation scheduled",
            extra={
                "stripe_subscription_id": snapshot.id,
                "current_period_end": isoformat(snapshot.current_period_end),
            },
        )
        return {
            "success": True,
            "cancelAtPeriodEnd": snapshot.cancel_at_period_end,
            "currentPeriodEnd": isoformat(snapshot.current_period_end),
        }

    def list_plans(self) -> list[PlanResult]:
        return self.gateway.list_plans(limit=10)


def get_session_service() -> SubscriptionSessionService:
    """Build the service from the process-wide configuration."""
    from payments.adapters import StripeAdapter
    from payments.config import get_service_config

    config = get_service_config()
    return SubscriptionSessionService(config, StripeAdapter(config))
