"""
Pytest fixtures for payment adapter tests.

This module provides fixtures for testing the Stripe adapter and the
database service client, including mock Stripe API responses, error
conditions and canned HTTP responses.

Sections:
    - Configuration Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
    - Database Service Fixtures
"""

import json
from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests
import stripe

from payments.adapters import DatabaseServiceClient, StripeAdapter
from payments.config import PaymentServiceConfig


# 2024-03-01 and 2024-04-01, 00:00 UTC
PERIOD_START = 1709251200
PERIOD_END = 1711929600


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def gateway_config():
    """Configuration with Stripe credentials and both plans."""
    return PaymentServiceConfig(
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test_secret",
        stripe_api_timeout=7,
        plan_price_ids={"MONTHLY": "price_monthly", "YEARLY": "price_yearly"},
        db_service_url="http://db.test/",
        db_service_timeout=4.0,
    )


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@dataclass
class MockStripeList:
    """Mock Stripe list response with data attribute."""

    items: list[MockStripeObject]
    has_more: bool = False

    @property
    def data(self) -> list[MockStripeObject]:
        return self.items


@pytest.fixture
def mock_customer():
    """Create a mock Customer response."""

    def _create(
        id: str = "cus_test123",
        email: str | None = "subscriber@example.com",
        deleted: bool = False,
    ) -> MockStripeObject:
        data = {
            "id": id,
            "object": "customer",
            "email": email,
            "metadata": {"userId": email} if email else {},
        }
        if deleted:
            data["deleted"] = True
        return MockStripeObject(data)

    return _create


@pytest.fixture
def mock_subscription():
    """Create a mock Subscription response with the product expanded."""

    def _create(
        id: str = "sub_test123",
        customer: str = "cus_test123",
        status: str = "active",
        cancel_at_period_end: bool = False,
        cancel_at: int | None = None,
        period_on_item: bool = False,
        product_name: str | None = "Premium Monthly",
        unit_amount: int = 999,
        currency: str = "eur",
    ) -> MockStripeObject:
        item = {
            "id": "si_test123",
            "price": {
                "id": "price_monthly",
                "unit_amount": unit_amount,
                "currency": currency,
                "product": (
                    {"id": "prod_test123", "name": product_name}
                    if product_name
                    else "prod_test123"
                ),
            },
        }
        data = {
            "id": id,
            "object": "subscription",
            "customer": customer,
            "status": status,
            "cancel_at_period_end": cancel_at_period_end,
            "cancel_at": cancel_at,
            "ended_at": None,
            "currency": currency,
            "items": {"object": "list", "data": [item]},
        }
        if period_on_item:
            item["current_period_start"] = PERIOD_START
            item["current_period_end"] = PERIOD_END
        else:
            data["current_period_start"] = PERIOD_START
            data["current_period_end"] = PERIOD_END
        return MockStripeObject(data)

    return _create


@pytest.fixture
def mock_checkout_session():
    """Create a mock Checkout Session response."""

    def _create(
        id: str = "cs_test123",
        url: str = "https://checkout.stripe.com/c/pay/cs_test123",
        customer: str = "cus_test123",
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "checkout.session",
                "url": url,
                "customer": customer,
                "mode": "subscription",
            }
        )

    return _create


@pytest.fixture
def mock_price_list():
    """Create a mock Price list with products expanded."""

    def _create() -> MockStripeList:
        return MockStripeList(
            items=[
                MockStripeObject(
                    {
                        "id": "price_monthly",
                        "object": "price",
                        "unit_amount": 999,
                        "currency": "eur",
                        "recurring": {"interval": "month", "interval_count": 1},
                        "product": {
                            "id": "prod_monthly",
                            "name": "Premium Monthly",
                            "description": "Billed every month",
                        },
                    }
                ),
                MockStripeObject(
                    {
                        "id": "price_yearly",
                        "object": "price",
                        "unit_amount": 9999,
                        "currency": "eur",
                        "recurring": {"interval": "year", "interval_count": 1},
                        "product": "prod_yearly",
                    }
                ),
            ]
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError."""
    return stripe.CardError(
        message="Your card was declined.",
        param=None,
        code="card_declined",
    )


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such subscription: 'sub_missing'",
        param: str | None = "id",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(
            message=message,
            param=param,
            code=code,
        )

    return _create


@pytest.fixture
def rate_limit_error():
    """Create a Stripe RateLimitError."""
    return stripe.RateLimitError(
        message="Too many requests hit the API too quickly.",
    )


@pytest.fixture
def api_connection_error():
    """Create a Stripe APIConnectionError."""
    return stripe.APIConnectionError(
        message="Could not connect to Stripe.",
    )


@pytest.fixture
def api_error():
    """Create a Stripe APIError."""
    return stripe.APIError(
        message="Something went wrong on Stripe's end.",
    )


@pytest.fixture
def authentication_error():
    """Create a Stripe AuthenticationError."""
    return stripe.AuthenticationError(
        message="Invalid API Key provided.",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def adapter(gateway_config, mock_stripe_http_client):
    """StripeAdapter with the HTTP client mocked."""
    return StripeAdapter(gateway_config)


@pytest.fixture
def mock_stripe_customer(mock_customer):
    """Mock stripe.Customer API."""
    with patch("stripe.Customer") as mock:
        mock.create.return_value = mock_customer()
        mock.retrieve.return_value = mock_customer()
        yield mock


@pytest.fixture
def mock_stripe_subscription(mock_subscription):
    """Mock stripe.Subscription API."""
    with patch("stripe.Subscription") as mock:
        mock.retrieve.return_value = mock_subscription()
        mock.modify.return_value = mock_subscription(cancel_at_period_end=True)
        yield mock


@pytest.fixture
def mock_stripe_checkout(mock_checkout_session):
    """Mock stripe.checkout.Session API."""
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = mock_checkout_session()
        yield mock


@pytest.fixture
def mock_stripe_price(mock_price_list):
    """Mock stripe.Price API."""
    with patch("stripe.Price") as mock:
        mock.list.return_value = mock_price_list()
        yield mock


# =============================================================================
# Database Service Fixtures
# =============================================================================


@pytest.fixture
def json_response():
    """Build a real requests.Response with a JSON (or empty) body."""

    def _create(status_code: int = 200, body: Any = None) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response._content = b"" if body is None else json.dumps(body).encode()
        response.headers["Content-Type"] = "application/json"
        return response

    return _create


@pytest.fixture
def db_session(json_response):
    """requests.Session mock answering 200 with an empty JSON object."""
    session = MagicMock(spec=requests.Session)
    session.request.return_value = json_response(200, {})
    return session


@pytest.fixture
def db_client(gateway_config, db_session):
    """DatabaseServiceClient using the mocked session."""
    return DatabaseServiceClient(gateway_config, session=db_session)
