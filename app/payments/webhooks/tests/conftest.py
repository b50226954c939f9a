"""
Pytest fixtures for webhook tests.

Provides fixtures for testing the webhook view, processor and handlers:
raw Stripe event payloads, a HandlerContext with mocked collaborators,
and a real signer for Stripe-Signature headers.
"""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.core.cache import cache

from notifications.dispatcher import NotificationDispatcher
from payments.adapters import (
    CustomerResult,
    DatabaseServiceClient,
    StripeAdapter,
    SubscriptionSnapshot,
)
from payments.config import PaymentServiceConfig
from payments.webhooks.dedup import ProcessedEventStore
from payments.webhooks.handlers import HandlerContext


WEBHOOK_SECRET = "whsec_test_secret"
SUBSCRIBER_EMAIL = "subscriber@example.com"

PERIOD_START = datetime(2024, 3, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2024, 4, 1, tzinfo=timezone.utc)


# =============================================================================
# Signing
# =============================================================================


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None):
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def webhook_config():
    """Configuration with a signing secret and test mode off."""
    return PaymentServiceConfig(
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        webhook_dedup_ttl=60,
        db_service_url="http://db.test",
        notification_service_url="http://notifications.test",
    )


# =============================================================================
# Event Payload Fixtures
# =============================================================================


@pytest.fixture
def make_event():
    """Build a raw Stripe event dict."""

    def _create(
        event_type: str,
        obj: dict,
        event_id: str = "evt_test123",
        previous_attributes: dict | None = None,
    ) -> dict:
        data = {"object": obj}
        if previous_attributes is not None:
            data["previous_attributes"] = previous_attributes
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": 1709251200,
            "livemode": False,
            "data": data,
        }

    return _create


@pytest.fixture
def subscription_object():
    """Build a Subscription data.object as sent in webhooks."""

    def _create(
        id: str = "sub_123",
        customer: str = "cus_1",
        status: str = "active",
        cancel_at_period_end: bool = False,
        cancel_at: int | None = None,
        ended_at: int | None = None,
    ) -> dict:
        return {
            "id": id,
            "object": "subscription",
            "customer": customer,
            "status": status,
            "cancel_at_period_end": cancel_at_period_end,
            "cancel_at": cancel_at,
            "ended_at": ended_at,
            "current_period_start": int(PERIOD_START.timestamp()),
            "current_period_end": int(PERIOD_END.timestamp()),
            "items": {
                "data": [
                    {
                        "price": {
                            "unit_amount": 999,
                            "currency": "eur",
                            "product": "prod_123",
                        }
                    }
                ]
            },
        }

    return _create


@pytest.fixture
def invoice_object():
    """Build an Invoice data.object as sent in webhooks."""

    def _create(
        id: str = "in_123",
        subscription: str | None = "sub_123",
        billing_reason: str = "subscription_cycle",
        customer_email: str | None = SUBSCRIBER_EMAIL,
        amount_due: int = 999,
        amount_paid: int = 999,
    ) -> dict:
        return {
            "id": id,
            "object": "invoice",
            "customer": "cus_1",
            "customer_email": customer_email,
            "subscription": subscription,
            "billing_reason": billing_reason,
            "amount_due": amount_due,
            "amount_paid": amount_paid,
            "currency": "eur",
            "created": 1709251200,
            "invoice_pdf": "https://pay.stripe.com/invoice/in_123/pdf",
            "hosted_invoice_url": "https://invoice.stripe.com/i/in_123",
        }

    return _create


@pytest.fixture
def checkout_object():
    """Build a Checkout Session data.object as sent in webhooks."""

    def _create(
        customer_email: str | None = SUBSCRIBER_EMAIL,
        subscription: str | None = "sub_123",
    ) -> dict:
        return {
            "id": "cs_123",
            "object": "checkout.session",
            "customer": "cus_1",
            "customer_email": customer_email,
            "customer_details": {"email": customer_email},
            "subscription": subscription,
            "mode": "subscription",
        }

    return _create


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def stripe_gateway(webhook_config):
    """Real StripeAdapter over a patched HTTP client."""
    with patch("stripe.RequestsClient"):
        yield StripeAdapter(webhook_config)


@pytest.fixture
def snapshot():
    """Build a SubscriptionSnapshot as returned by the gateway."""

    def _create(
        id: str = "sub_123",
        status: str = "active",
        cancel_at_period_end: bool = False,
    ) -> SubscriptionSnapshot:
        return SubscriptionSnapshot(
            id=id,
            customer_id="cus_1",
            status=status,
            cancel_at_period_end=cancel_at_period_end,
            current_period_start=PERIOD_START,
            current_period_end=PERIOD_END,
            plan_name="Premium Monthly",
            amount=Decimal("9.99"),
            currency="eur",
        )

    return _create


@pytest.fixture
def gateway(snapshot):
    """StripeAdapter mock returning an active subscription and known customer."""
    mock = MagicMock(spec=StripeAdapter)
    mock.retrieve_subscription.return_value = snapshot()
    mock.retrieve_customer.return_value = CustomerResult(
        id="cus_1", email=SUBSCRIBER_EMAIL
    )
    return mock


@pytest.fixture
def database():
    """DatabaseServiceClient mock with one user and one subscription record."""
    mock = MagicMock(spec=DatabaseServiceClient)
    mock.get_user_by_email.return_value = {"id": 7, "email": SUBSCRIBER_EMAIL}
    mock.find_subscription_by_stripe_id.return_value = {
        "internalId": 42,
        "stripeSubscriptionId": "sub_123",
    }
    mock.update_subscription.return_value = {"internalId": 42}
    mock.create_subscription.return_value = {"internalId": 43}
    mock.update_user_subscription.return_value = {"id": 7}
    return mock


@pytest.fixture
def notifier():
    """NotificationDispatcher mock."""
    return MagicMock(spec=NotificationDispatcher)


@pytest.fixture
def handler_context(webhook_config, gateway, database, notifier):
    """HandlerContext wired with mocked collaborators."""
    return HandlerContext(
        config=webhook_config,
        gateway=gateway,
        db=database,
        notifier=notifier,
    )


@pytest.fixture
def event_store():
    """ProcessedEventStore over the test cache."""
    return ProcessedEventStore(cache, ttl=60)


@pytest.fixture
def signer():
    """Real Stripe-Signature signer for the configured secret."""
    return sign


@pytest.fixture
def encode():
    """Serialize an event dict to the raw bytes Stripe would send."""

    def _encode(event: dict) -> bytes:
        return json.dumps(event).encode()

    return _encode
