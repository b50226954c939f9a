"""
Webhook event-source verification.

The processor depends on the EventVerifier protocol only. Which verifier
it gets is decided once, when the processor is built:

- StripeSignatureVerifier: production. Checks the Stripe-Signature HMAC
  against the untouched request bytes.
- TestModeVerifier: wraps the signature verifier and trusts unsigned
  bodies. Only built when WEBHOOK_TEST_MODE_ENABLED is set; it must stay
  off in production deployments.

Usage:
    verifier = build_verifier(config, gateway)
    payload = verifier.verify(request.body, request.headers)
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from payments.exceptions import InvalidEventError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payments.adapters import StripeAdapter
    from payments.config import PaymentServiceConfig


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"
TEST_MODE_HEADER = "X-Test-Mode"


@runtime_checkable
class EventVerifier(Protocol):
    """Authenticates a raw webhook body and returns the event dict."""

    def verify(self, payload: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        """
        Verify a webhook request.

        Args:
            payload: Raw request body, exactly as received
            headers: Case-insensitive request headers (request.headers)

        Returns:
            Event dict

        Raises:
            SignatureInvalidError: Request could not be authenticated
            InvalidEventError: Body is not a JSON object
        """
        ...


class StripeSignatureVerifier:
    """Verifies the Stripe-Signature header via the billing gateway."""

    def __init__(self, gateway: StripeAdapter):
        self.gateway = gateway

    def verify(self, payload: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        return self.gateway.construct_event(payload, headers.get(SIGNATURE_HEADER))


class TestModeVerifier:
    """
    Trusts unsigned webhook bodies in test environments.

    A request is trusted without a signature check when any of these hold:
    the X-Test-Mode header is "true", there is no Stripe-Signature header,
    or no signing secret is configured. Every other request is delegated
    to the wrapped verifier.

    Unsigned events without an id get a generated "evt_test_<ms>" id.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, delegate: EventVerifier, has_secret: bool):
        self.delegate = delegate
        self.has_secret = has_secret

    def verify(self, payload: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
        signature = headers.get(SIGNATURE_HEADER)
        test_header = (headers.get(TEST_MODE_HEADER) or "").lower() == "true"

        if not (test_header or not signature or not self.has_secret):
            return self.delegate.verify(payload, headers)

        logger.warning(
            "Accepting unsigned webhook in test mode",
            extra={
                "test_header": test_header,
                "has_signature": bool(signature),
                "has_secret": self.has_secret,
            },
        )
        try:
            data = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidEventError(
                "Webhook payload is not valid JSON",
                details={"error": str(e)},
            ) from e
        if not isinstance(data, dict):
            raise InvalidEventError("Webhook payload must be a JSON object")
        if not data.get("id"):
            data["id"] = f"evt_test_{int(time.time() * 1000)}"
        return data


def build_verifier(
    config: PaymentServiceConfig, gateway: StripeAdapter
) -> EventVerifier:
    """Build the verifier for this deployment."""
    verifier: EventVerifier = StripeSignatureVerifier(gateway)
    if config.webhook_test_mode_enabled:
        logger.warning("Webhook test mode is enabled; unsigned events are trusted")
        verifier = TestModeVerifier(
            verifier, has_secret=bool(config.stripe_webhook_secret)
        )
    return verifier
