"""
Test configuration and fixtures for notification tests.

This module provides:
- A test PaymentServiceConfig pointing at a fake notification service
- A mocked requests.Session and real requests.Response builders
- A dispatcher whose sleep is recorded instead of performed

Usage:
    def test_example(dispatcher, mock_session, json_response):
        mock_session.post.return_value = json_response(201, {"ok": True})
        dispatcher.send("a@b.com", "new", {})
"""

import json
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
import requests

from notifications.dispatcher import NotificationDispatcher
from payments.config import PaymentServiceConfig


NOTIFICATION_URL = "http://notifications.test"


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def service_config():
    """Config with four attempts and a one second base delay."""
    return PaymentServiceConfig(
        stripe_secret_key="sk_test_123",
        notification_service_url=NOTIFICATION_URL + "/",
        notification_timeout=5.0,
        notification_max_attempts=4,
        notification_retry_base_delay=1.0,
    )


@pytest.fixture
def queued_config(service_config):
    """Same config in queued delivery mode."""
    return replace(service_config, notification_delivery_mode="queued")


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def json_response():
    """Build a real requests.Response with a JSON body."""

    def _create(status_code: int = 200, body=None) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response._content = json.dumps(body).encode() if body is not None else b""
        response.headers["Content-Type"] = "application/json"
        return response

    return _create


@pytest.fixture
def mock_session(json_response):
    """requests.Session mock answering 200 {"success": true} by default."""
    session = MagicMock(spec=requests.Session)
    session.post.return_value = json_response(200, {"success": True})
    return session


# =============================================================================
# Dispatcher Fixtures
# =============================================================================


@pytest.fixture
def sleeps():
    """Delays the dispatcher would have slept, in order."""
    return []


@pytest.fixture
def dispatcher(service_config, mock_session, sleeps):
    """Inline dispatcher with recorded sleeps."""
    return NotificationDispatcher(
        service_config,
        session=mock_session,
        sleep=sleeps.append,
    )
