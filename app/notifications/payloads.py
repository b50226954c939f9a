"""
Typed data carried by each notification category.

Payloads are dataclasses with snake_case fields; to_dict() produces the
camelCase JSON the notification service expects, with datetimes as
ISO 8601 strings and Decimal amounts as numbers.

Usage:
    from notifications.payloads import RenewalData

    data = RenewalData(subscription_id="sub_123", end_date=period_end)
    data.to_dict()  # {"subscriptionId": "sub_123", "endDate": "2025-02-01T00:00:00Z"}
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from decimal import Decimal
from typing import Any

from core.helpers import isoformat


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return isoformat(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


@dataclass
class NotificationPayload:
    """Base class for category payloads."""

    def to_dict(self) -> dict[str, Any]:
        return {
            _camel(f.name): _serialize(getattr(self, f.name)) for f in fields(self)
        }


@dataclass
class SubscriptionStartData(NotificationPayload):
    """Sent with "new" after checkout completes."""

    subscription_id: str
    plan_type: str
    start_date: datetime | None
    end_date: datetime | None
    amount: Decimal | None = None
    currency: str | None = None
    checkout_completed: bool = True


@dataclass
class RenewalData(NotificationPayload):
    """Sent with "renewed" after an invoice is paid."""

    subscription_id: str
    end_date: datetime | None


@dataclass
class CancellationData(NotificationPayload):
    """Sent with "cancelled" and "cancellation_scheduled"."""

    subscription_id: str
    end_date: datetime | None


@dataclass
class PaymentFailedData(NotificationPayload):
    """
    Sent with "payment_failed".

    amount_due is a two-decimal string, e.g. "19.99".
    """

    invoice_id: str
    amount_due: str
    currency: str | None
    subscription_id: str | None = None


@dataclass
class StatusChangeData(NotificationPayload):
    """Sent with "updated" and "reactivated"."""

    subscription_id: str
    new_status: str | None
    previous_status: str | None = None
    end_date: datetime | None = None


@dataclass
class SubscriptionEndedData(NotificationPayload):
    """Sent with "ended" once the subscription is deleted."""

    subscription_id: str
    ended_at: datetime | None = None


@dataclass
class InvoiceReceiptData(NotificationPayload):
    """Invoice receipt, posted to the invoice endpoint under "invoiceData"."""

    id: str
    amount_paid: Decimal | None
    currency: str | None
    created: datetime | None
    pdf_url: str | None = None
    hosted_invoice_url: str | None = None
