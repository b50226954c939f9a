"""
Delivery of subscription lifecycle notifications.

The NotificationDispatcher validates a (recipient, category, data) triple,
routes it to the notification service endpoint for that category and
masks transient network failures from its callers with bounded retry.

Retry policy:
    - Only connection-level failures are retried (refused, timeout, DNS,
      aborted connection). A 4xx/5xx answer is final.
    - At most config.notification_max_attempts attempts in total.
    - Between attempts the dispatcher waits config.notification_retry_delays()
      (exponential, base delay doubling), so the total wait before the
      final failure is the sum of that series.

Delivery modes:
    inline: the bounded loop runs in the caller's thread, sleeping between
        attempts.
    queued: the request is handed to the deliver_notification Celery task,
        which performs one attempt per run and re-enqueues itself with a
        countdown instead of sleeping.

Usage:
    from notifications.categories import NotificationCategory
    from notifications.dispatcher import NotificationDispatcher
    from notifications.payloads import RenewalData

    dispatcher = NotificationDispatcher(config)
    dispatcher.send(
        "a@b.com",
        NotificationCategory.RENEWED,
        RenewalData(subscription_id="sub_123", end_date=period_end),
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

import requests
from kombu.exceptions import OperationalError

from core.helpers import mask_email
from notifications.categories import INVOICE_PATH, route_for
from notifications.exceptions import (
    InvalidRecipientError,
    NotificationRejectedError,
    NotificationServiceUnavailableError,
)
from notifications.payloads import NotificationPayload
from payments.config import DELIVERY_MODE_QUEUED, get_service_config

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from notifications.categories import NotificationCategory
    from notifications.payloads import InvoiceReceiptData
    from payments.config import PaymentServiceConfig


INVOICE_LABEL = "invoice"


@dataclass(frozen=True)
class NotificationRequest:
    """
    A fully routed notification, ready to POST.

    Plain data only, so it can travel through the Celery broker.

    Attributes:
        path: Endpoint path on the notification service
        body: JSON body
        label: Category value (or "invoice") for logging
        recipient: Recipient email, for logging
    """

    path: str
    body: dict[str, Any]
    label: str
    recipient: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NotificationRequest:
        return cls(
            path=data["path"],
            body=dict(data["body"]),
            label=data["label"],
            recipient=data["recipient"],
        )


def validate_recipient(email: Any) -> str:
    """
    Check the recipient is a non-empty string containing "@".

    Raises:
        InvalidRecipientError: Otherwise
    """
    if not isinstance(email, str) or not email.strip() or "@" not in email:
        raise InvalidRecipientError(
            "Notification recipient must be an email address",
            details={"recipient": mask_email(email if isinstance(email, str) else None)},
        )
    return email.strip()


class NotificationDispatcher:
    """
    Sends categorized notifications to the notification service.

    Holds no state between calls besides its configuration.

    Attributes:
        base_url: Notification service base URL
        timeout: Per-attempt timeout in seconds
        retry_delays: Waits between attempts (len == max_attempts - 1)
        delivery_mode: "inline" or "queued"
    """

    def __init__(
        self,
        config: PaymentServiceConfig,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = config.notification_service_url
        self.timeout = config.notification_timeout
        self.retry_delays = config.notification_retry_delays()
        self.delivery_mode = config.notification_delivery_mode
        self.session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this dispatcher."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @property
    def max_attempts(self) -> int:
        return len(self.retry_delays) + 1

    # =========================================================================
    # Public API
    # =========================================================================

    def build_request(
        self,
        email: Any,
        category: str | NotificationCategory,
        data: NotificationPayload | Mapping[str, Any] | None = None,
    ) -> NotificationRequest:
        """
        Validate and route a notification without sending it.

        Raises:
            InvalidRecipientError: email is empty or has no "@"
            UnknownCategoryError: category is not a known category
        """
        recipient = validate_recipient(email)
        route = route_for(category)
        if isinstance(data, NotificationPayload):
            data = data.to_dict()
        return NotificationRequest(
            path=route.path,
            body={"email": recipient, route.payload_key: dict(data or {})},
            label=str(category),
            recipient=recipient,
        )

    def send(
        self,
        email: Any,
        category: str | NotificationCategory,
        data: NotificationPayload | Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Deliver a lifecycle notification.

        Args:
            email: Recipient email
            category: NotificationCategory (or its value)
            data: Category payload

        Returns:
            Notification service response body (inline), None when queued

        Raises:
            InvalidRecipientError: Invalid email, nothing sent
            UnknownCategoryError: Unknown category, nothing sent
            NotificationRejectedError: Service answered with an error status
            NotificationServiceUnavailableError: All attempts failed to connect
        """
        return self.dispatch(self.build_request(email, category, data))

    def send_invoice_receipt(self, email: Any, invoice: InvoiceReceiptData) -> Any:
        """
        Deliver an invoice receipt to the invoice endpoint.

        Same validation, retry and delivery mode as send().
        """
        recipient = validate_recipient(email)
        request = NotificationRequest(
            path=INVOICE_PATH,
            body={"to": recipient, "invoiceData": invoice.to_dict()},
            label=INVOICE_LABEL,
            recipient=recipient,
        )
        return self.dispatch(request)

    def dispatch(self, request: NotificationRequest) -> Any:
        """
        Deliver inline, or hand the request to the queue.

        Raises:
            NotificationServiceUnavailableError: Also when the broker is
                unreachable in queued mode
        """
        if self.delivery_mode == DELIVERY_MODE_QUEUED:
            from notifications.tasks import deliver_notification

            try:
                deliver_notification.delay(request.to_dict())
            except OperationalError as e:
                self.get_logger().error(
                    "Notification could not be queued",
                    extra={**self._log_context(request), "error": str(e)},
                )
                raise NotificationServiceUnavailableError(
                    f"Notification queue unavailable: {e}",
                    details={"path": request.path, "error": type(e).__name__},
                ) from e
            self.get_logger().info(
                "Notification queued",
                extra=self._log_context(request),
            )
            return None
        return self.deliver(request)

    # =========================================================================
    # Delivery
    # =========================================================================

    def deliver(self, request: NotificationRequest) -> Any:
        """
        Deliver with bounded retry on connection-level failures.

        Raises:
            NotificationRejectedError: On the first error status (no retry)
            NotificationServiceUnavailableError: After the last attempt
        """
        logger = self.get_logger()
        for attempt in range(self.max_attempts):
            try:
                return self.attempt(request, attempt)
            except NotificationServiceUnavailableError as e:
                if attempt + 1 >= self.max_attempts:
                    logger.error(
                        "Notification delivery failed after all attempts",
                        extra={
                            **self._log_context(request),
                            "attempts": self.max_attempts,
                        },
                    )
                    raise NotificationServiceUnavailableError(
                        f"Notification service unreachable after "
                        f"{self.max_attempts} attempts",
                        details={**e.details, "attempts": self.max_attempts},
                    ) from e

                delay = self.retry_delays[attempt]
                logger.warning(
                    "Notification delivery failed, retrying",
                    extra={
                        **self._log_context(request),
                        "attempt": attempt + 1,
                        "retry_in_seconds": delay,
                    },
                )
                self._sleep(delay)

    def attempt(self, request: NotificationRequest, attempt: int = 0) -> Any:
        """
        Make a single delivery attempt.

        Args:
            request: Routed notification
            attempt: Zero-based attempt number, for logging

        Returns:
            Decoded response body (None when empty)

        Raises:
            NotificationServiceUnavailableError: Connection refused, timeout,
                name resolution failure or aborted connection
            NotificationRejectedError: Error status, or any other request failure
        """
        logger = self.get_logger()
        url = f"{self.base_url}{request.path}"
        log_context = {**self._log_context(request), "attempt": attempt + 1}
        start_time = time.time()

        try:
            response = self.session.post(url, json=request.body, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NotificationServiceUnavailableError(
                f"Notification service unreachable: {e}",
                details={"path": request.path, "error": type(e).__name__},
            ) from e
        except requests.RequestException as e:
            raise NotificationRejectedError(
                f"Notification request failed: {e}",
                details={"path": request.path, "error": type(e).__name__},
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        if response.status_code >= 400:
            body = _body(response)
            logger.error(
                "Notification rejected",
                extra={**log_context, "response_body": body},
            )
            raise NotificationRejectedError(
                f"Notification service returned {response.status_code}",
                status_code=response.status_code,
                response_body=body,
                details={"path": request.path},
            )

        logger.info("Notification delivered", extra=log_context)
        return _body(response)

    def _log_context(self, request: NotificationRequest) -> dict[str, Any]:
        return {
            "category": request.label,
            "path": request.path,
            "recipient": mask_email(request.recipient),
        }


def _body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def get_dispatcher() -> NotificationDispatcher:
    """Build a dispatcher from the process-wide configuration."""
    return NotificationDispatcher(get_service_config())
