"""
Tests for NotificationDispatcher.

Tests cover:
- Recipient and category validation (fail fast, nothing sent)
- Routing to category endpoints and body keys
- Bounded retry on connection-level failures
- No retry on error statuses
- Invoice receipts
- Queued delivery hand-off

Usage:
    pytest app/notifications/tests/test_dispatcher.py -v
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
import requests
from kombu.exceptions import OperationalError

from notifications.categories import NotificationCategory
from notifications.dispatcher import NotificationDispatcher, NotificationRequest
from notifications.exceptions import (
    InvalidRecipientError,
    NotificationRejectedError,
    NotificationServiceUnavailableError,
    UnknownCategoryError,
)
from notifications.payloads import InvoiceReceiptData, RenewalData
from payments.config import PaymentServiceConfig


NOTIFICATION_URL = "http://notifications.test"


# =============================================================================
# Validation Tests
# =============================================================================


class TestValidation:
    """Tests for fail-fast validation before any network call."""

    @pytest.mark.parametrize("email", ["", "   ", None, "not-an-email", 42])
    def test_invalid_recipient(self, dispatcher, mock_session, email):
        """Should raise InvalidRecipientError without sending."""
        with pytest.raises(InvalidRecipientError):
            dispatcher.send(email, NotificationCategory.NEW, {})

        mock_session.post.assert_not_called()

    def test_unknown_category(self, dispatcher, mock_session):
        """Should raise UnknownCategoryError without sending."""
        with pytest.raises(UnknownCategoryError) as exc_info:
            dispatcher.send("a@b.com", "expiring-soon", {})

        assert exc_info.value.details == {"category": "expiring-soon"}
        mock_session.post.assert_not_called()

    def test_validation_errors_are_not_retried(self, dispatcher, sleeps):
        """Should not sleep before failing validation."""
        with pytest.raises(InvalidRecipientError):
            dispatcher.send("", NotificationCategory.RENEWED, {})

        assert sleeps == []


# =============================================================================
# Routing Tests
# =============================================================================


class TestRouting:
    """Tests for endpoint and body construction."""

    def test_posts_to_category_endpoint(self, dispatcher, mock_session):
        """Should POST {email, subscriptionData} to the category path."""
        data = RenewalData(
            subscription_id="sub_123",
            end_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
        )

        result = dispatcher.send("a@b.com", NotificationCategory.RENEWED, data)

        assert result == {"success": True}
        mock_session.post.assert_called_once_with(
            f"{NOTIFICATION_URL}/notifications/subscription/renewed",
            json={
                "email": "a@b.com",
                "subscriptionData": {
                    "subscriptionId": "sub_123",
                    "endDate": "2025-02-01T00:00:00Z",
                },
            },
            timeout=5.0,
        )

    def test_payment_failed_uses_payment_data_key(self, dispatcher, mock_session):
        """Should send payment_failed data under paymentData."""
        dispatcher.send(
            "a@b.com",
            "payment_failed",
            {"invoiceId": "in_1", "amountDue": "19.99", "currency": "eur"},
        )

        url = mock_session.post.call_args.args[0]
        body = mock_session.post.call_args.kwargs["json"]
        assert url.endswith("/notifications/subscription/payment-failed")
        assert body["paymentData"]["amountDue"] == "19.99"
        assert "subscriptionData" not in body

    def test_accepts_category_value_strings(self, dispatcher):
        """Should accept the raw category value."""
        request = dispatcher.build_request("a@b.com", "cancellation_scheduled", {})

        assert request.path == "/notifications/subscription/cancelled"
        assert request.label == "cancellation_scheduled"


# =============================================================================
# Retry Tests
# =============================================================================


class TestRetry:
    """Tests for bounded retry with exponential backoff."""

    def test_retries_connection_errors_until_success(
        self, dispatcher, mock_session, json_response, sleeps
    ):
        """Should retry after connection refused and return the final body."""
        mock_session.post.side_effect = [
            requests.ConnectionError("refused"),
            json_response(201, {"id": "n_1"}),
        ]

        result = dispatcher.send("a@b.com", NotificationCategory.NEW, {})

        assert result == {"id": "n_1"}
        assert mock_session.post.call_count == 2
        assert sleeps == [1.0]

    def test_exhaustion_waits_sum_of_backoff_series(
        self, dispatcher, mock_session, sleeps
    ):
        """Should make one attempt plus three retries, waiting 1s + 2s + 4s."""
        mock_session.post.side_effect = requests.Timeout("timed out")

        with pytest.raises(NotificationServiceUnavailableError) as exc_info:
            dispatcher.send("a@b.com", NotificationCategory.RENEWED, {})

        assert mock_session.post.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]
        assert sum(sleeps) == 7.0
        assert exc_info.value.details["attempts"] == 4

    def test_default_configuration_retries_three_times(self, mock_session, sleeps):
        """Should default to three retries after the first attempt."""
        config = PaymentServiceConfig()
        mock_session.post.side_effect = requests.ConnectionError("refused")
        dispatcher = NotificationDispatcher(
            config, session=mock_session, sleep=sleeps.append
        )

        with pytest.raises(NotificationServiceUnavailableError):
            dispatcher.send("a@b.com", NotificationCategory.NEW, {})

        assert config.notification_retry_delays() == [1.0, 2.0, 4.0]
        assert mock_session.post.call_count == 4

    def test_single_attempt_configuration(self, service_config, mock_session, sleeps):
        """Should not retry at all when max attempts is 1."""
        config = replace(service_config, notification_max_attempts=1)
        dispatcher = NotificationDispatcher(
            config, session=mock_session, sleep=sleeps.append
        )
        mock_session.post.side_effect = requests.ConnectionError("refused")

        with pytest.raises(NotificationServiceUnavailableError):
            dispatcher.send("a@b.com", NotificationCategory.NEW, {})

        assert mock_session.post.call_count == 1
        assert sleeps == []

    @pytest.mark.parametrize("status_code", [400, 422, 500])
    def test_error_status_is_not_retried(
        self, dispatcher, mock_session, json_response, sleeps, status_code
    ):
        """Should raise NotificationRejectedError after a single attempt."""
        mock_session.post.return_value = json_response(
            status_code, {"error": "invalid"}
        )

        with pytest.raises(NotificationRejectedError) as exc_info:
            dispatcher.send("a@b.com", NotificationCategory.UPDATED, {})

        assert exc_info.value.status_code == status_code
        assert exc_info.value.response_body == {"error": "invalid"}
        assert mock_session.post.call_count == 1
        assert sleeps == []


# =============================================================================
# Invoice Receipt Tests
# =============================================================================


class TestInvoiceReceipt:
    """Tests for send_invoice_receipt."""

    def test_posts_invoice_data(self, dispatcher, mock_session):
        """Should POST {to, invoiceData} to the invoice endpoint."""
        invoice = InvoiceReceiptData(
            id="in_123",
            amount_paid=Decimal("19.99"),
            currency="eur",
            created=datetime(2025, 1, 1, tzinfo=timezone.utc),
            pdf_url="https://stripe.test/in_123.pdf",
            hosted_invoice_url="https://stripe.test/in_123",
        )

        dispatcher.send_invoice_receipt("a@b.com", invoice)

        mock_session.post.assert_called_once()
        assert mock_session.post.call_args.args[0] == (
            f"{NOTIFICATION_URL}/notifications/invoice"
        )
        assert mock_session.post.call_args.kwargs["json"] == {
            "to": "a@b.com",
            "invoiceData": {
                "id": "in_123",
                "amountPaid": 19.99,
                "currency": "eur",
                "created": "2025-01-01T00:00:00Z",
                "pdfUrl": "https://stripe.test/in_123.pdf",
                "hostedInvoiceUrl": "https://stripe.test/in_123",
            },
        }

    def test_invalid_recipient(self, dispatcher, mock_session):
        """Should validate the receipt recipient."""
        invoice = InvoiceReceiptData(
            id="in_1", amount_paid=None, currency="eur", created=None
        )

        with pytest.raises(InvalidRecipientError):
            dispatcher.send_invoice_receipt(None, invoice)

        mock_session.post.assert_not_called()


# =============================================================================
# Queued Delivery Tests
# =============================================================================


class TestQueuedDelivery:
    """Tests for queued delivery mode."""

    def test_enqueues_instead_of_posting(self, queued_config, mock_session):
        """Should enqueue deliver_notification and make no HTTP call."""
        dispatcher = NotificationDispatcher(queued_config, session=mock_session)

        with patch("notifications.tasks.deliver_notification.delay") as mock_delay:
            result = dispatcher.send("a@b.com", NotificationCategory.ENDED, {})

        assert result is None
        mock_session.post.assert_not_called()
        mock_delay.assert_called_once()
        queued = NotificationRequest.from_dict(mock_delay.call_args.args[0])
        assert queued.path == "/notifications/subscription/ended"
        assert queued.recipient == "a@b.com"

    def test_validation_happens_before_enqueue(self, queued_config, mock_session):
        """Should reject invalid input without enqueueing."""
        dispatcher = NotificationDispatcher(queued_config, session=mock_session)

        with patch("notifications.tasks.deliver_notification.delay") as mock_delay:
            with pytest.raises(UnknownCategoryError):
                dispatcher.send("a@b.com", "bogus", {})

        mock_delay.assert_not_called()

    def test_broker_outage_raises_service_unavailable(
        self, queued_config, mock_session
    ):
        """Should report an unreachable broker as a notification error."""
        dispatcher = NotificationDispatcher(queued_config, session=mock_session)

        with patch(
            "notifications.tasks.deliver_notification.delay",
            side_effect=OperationalError("Error 111 connecting to localhost:6379"),
        ):
            with pytest.raises(NotificationServiceUnavailableError) as exc_info:
                dispatcher.send("a@b.com", NotificationCategory.RENEWED, {})

        assert exc_info.value.details["error"] == "OperationalError"
        mock_session.post.assert_not_called()
