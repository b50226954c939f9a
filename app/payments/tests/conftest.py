"""
Pytest fixtures for payment API tests.

Provides a configuration with both plans priced and a StripeAdapter
mock returning realistic adapter results.

Usage:
    def test_create_session(session_service, gateway):
        session_service.create_subscription_session(None, "monthly", "a@b.com")
        gateway.create_customer.assert_called_once_with("a@b.com")
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from payments.adapters import (
    CheckoutSessionResult,
    CustomerResult,
    PlanResult,
    StripeAdapter,
    SubscriptionSnapshot,
)
from payments.config import PaymentServiceConfig
from payments.services import SubscriptionSessionService


PERIOD_END = datetime(2024, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def service_config():
    """Configuration with monthly and yearly prices."""
    return PaymentServiceConfig(
        stripe_secret_key="sk_test_123",
        plan_price_ids={"MONTHLY": "price_monthly", "YEARLY": "price_yearly"},
        client_url="https://app.example.com/",
    )


@pytest.fixture
def gateway():
    """StripeAdapter mock with one customer, session, subscription and plan."""
    mock = MagicMock(spec=StripeAdapter)
    mock.create_customer.return_value = CustomerResult(
        id="cus_new", email="user@example.com"
    )
    mock.create_checkout_session.return_value = CheckoutSessionResult(
        id="cs_123",
        url="https://checkout.stripe.com/c/pay/cs_123",
        customer_id="cus_new",
    )
    mock.retrieve_subscription.return_value = SubscriptionSnapshot(
        id="sub_123",
        customer_id="cus_new",
        status="active",
        current_period_end=PERIOD_END,
    )
    mock.cancel_subscription_at_period_end.return_value = SubscriptionSnapshot(
        id="sub_123",
        customer_id="cus_new",
        status="active",
        cancel_at_period_end=True,
        current_period_end=PERIOD_END,
    )
    mock.list_plans.return_value = [
        PlanResult(
            id="price_monthly",
            product_id="prod_123",
            name="Premium Monthly",
            description="All features, billed monthly",
            amount=Decimal("9.99"),
            currency="eur",
            interval="month",
            interval_count=1,
        )
    ]
    return mock


@pytest.fixture
def session_service(service_config, gateway):
    return SubscriptionSessionService(service_config, gateway)


@pytest.fixture
def api_service(session_service):
    """Route the API views to the service under test."""
    with patch("payments.views.get_session_service", return_value=session_service):
        yield session_service
