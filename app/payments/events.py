"""
Typed billing events.

Webhook payloads are decoded once, at the boundary, into one variant of
a closed union. Handlers receive the variant for their event type and
never look at raw dicts:

    checkout.session.completed     -> CheckoutSessionCompleted
    invoice.paid                   -> InvoicePaid
    invoice.payment_failed         -> InvoicePaymentFailed
    customer.subscription.updated  -> SubscriptionUpdated
    customer.subscription.deleted  -> SubscriptionDeleted
    anything else                  -> UnhandledEvent

Usage:
    from payments.events import decode_event

    event = decode_event(payload)
    if isinstance(event, SubscriptionDeleted):
        event.subscription.id
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Union

from core.helpers import from_timestamp
from payments.adapters.stripe_adapter import SubscriptionSnapshot, minor_to_major
from payments.exceptions import InvalidEventError


class EventType:
    """Event types with a dedicated handler."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"


# =============================================================================
# Event Variants
# =============================================================================


@dataclass(frozen=True)
class BillingEvent:
    """
    Fields common to every event.

    Attributes:
        id: Provider event id (evt_xxx), the de-duplication key
        type: Provider event type
        created: When the provider created the event
        livemode: False for test-mode events
    """

    id: str
    type: str
    created: datetime | None = None
    livemode: bool = False


@dataclass(frozen=True)
class CheckoutSessionCompleted(BillingEvent):
    """A hosted checkout finished; the subscription now exists."""

    session_id: str = ""
    customer_id: str | None = None
    subscription_id: str | None = None
    customer_email: str | None = None
    mode: str | None = None


@dataclass(frozen=True)
class InvoiceFields:
    """The parts of an Invoice the handlers use."""

    id: str
    customer_id: str | None
    customer_email: str | None
    subscription_id: str | None
    amount_due: Decimal | None
    amount_paid: Decimal | None
    currency: str | None
    created: datetime | None
    invoice_pdf: str | None = None
    hosted_invoice_url: str | None = None
    billing_reason: str | None = None

    @property
    def is_first_invoice(self) -> bool:
        """True for the invoice that opened the subscription."""
        return self.billing_reason == "subscription_create"


@dataclass(frozen=True)
class InvoicePaid(BillingEvent):
    invoice: InvoiceFields | None = None


@dataclass(frozen=True)
class InvoicePaymentFailed(BillingEvent):
    invoice: InvoiceFields | None = None


@dataclass(frozen=True)
class SubscriptionUpdated(BillingEvent):
    """
    A subscription changed.

    previous_attributes holds the old values of the changed fields, as
    sent by the provider.
    """

    subscription: SubscriptionSnapshot | None = None
    previous_attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def previous_status(self) -> str | None:
        return self.previous_attributes.get("status")

    @property
    def was_scheduled_for_cancellation(self) -> bool:
        return bool(self.previous_attributes.get("cancel_at_period_end"))


@dataclass(frozen=True)
class SubscriptionDeleted(BillingEvent):
    subscription: SubscriptionSnapshot | None = None


@dataclass(frozen=True)
class UnhandledEvent(BillingEvent):
    """Any event type without a handler; acknowledged as a no-op."""


Event = Union[
    CheckoutSessionCompleted,
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionUpdated,
    SubscriptionDeleted,
    UnhandledEvent,
]


# =============================================================================
# Decoding
# =============================================================================


def _expanded_id(value: Any) -> str | None:
    """Return the id of a field that may be an id or an expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


def _invoice_subscription_id(obj: dict[str, Any]) -> str | None:
    subscription_id = _expanded_id(obj.get("subscription"))
    if subscription_id:
        return subscription_id
    # Newer API versions move the link under parent.subscription_details
    parent = obj.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return _expanded_id(details.get("subscription"))


def _decode_invoice(obj: dict[str, Any]) -> InvoiceFields:
    return InvoiceFields(
        id=obj["id"],
        customer_id=_expanded_id(obj.get("customer")),
        customer_email=obj.get("customer_email"),
        subscription_id=_invoice_subscription_id(obj),
        amount_due=minor_to_major(obj.get("amount_due")),
        amount_paid=minor_to_major(obj.get("amount_paid")),
        currency=obj.get("currency"),
        created=from_timestamp(obj.get("created")),
        invoice_pdf=obj.get("invoice_pdf"),
        hosted_invoice_url=obj.get("hosted_invoice_url"),
        billing_reason=obj.get("billing_reason"),
    )


def _decode_checkout(obj: dict[str, Any]) -> dict[str, Any]:
    details = obj.get("customer_details") or {}
    return {
        "session_id": obj["id"],
        "customer_id": _expanded_id(obj.get("customer")),
        "subscription_id": _expanded_id(obj.get("subscription")),
        "customer_email": obj.get("customer_email") or details.get("email"),
        "mode": obj.get("mode"),
    }


def decode_event(payload: Any) -> Event:
    """
    Decode a verified webhook payload into its typed variant.

    Args:
        payload: Event dict (already signature-verified)

    Returns:
        One Event variant; UnhandledEvent for types without a handler

    Raises:
        InvalidEventError: Missing id, type, data or data.object, or a
            handled event whose object lacks its id
    """
    if not isinstance(payload, dict):
        raise InvalidEventError("Event payload must be a JSON object")

    event_id = payload.get("id")
    event_type = payload.get("type")
    data = payload.get("data")
    if not event_id or not isinstance(event_id, str):
        raise InvalidEventError("Event is missing its id")
    if not event_type or not isinstance(event_type, str):
        raise InvalidEventError("Event is missing its type", details={"id": event_id})
    if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
        raise InvalidEventError(
            "Event is missing data.object",
            details={"id": event_id, "type": event_type},
        )

    obj = data["object"]
    common = {
        "id": event_id,
        "type": event_type,
        "created": from_timestamp(payload.get("created")),
        "livemode": bool(payload.get("livemode")),
    }

    try:
        if event_type == EventType.CHECKOUT_SESSION_COMPLETED:
            return CheckoutSessionCompleted(**common, **_decode_checkout(obj))
        if event_type == EventType.INVOICE_PAID:
            return InvoicePaid(**common, invoice=_decode_invoice(obj))
        if event_type == EventType.INVOICE_PAYMENT_FAILED:
            return InvoicePaymentFailed(**common, invoice=_decode_invoice(obj))
        if event_type == EventType.SUBSCRIPTION_UPDATED:
            return SubscriptionUpdated(
                **common,
                subscription=SubscriptionSnapshot.from_stripe(obj),
                previous_attributes=dict(data.get("previous_attributes") or {}),
            )
        if event_type == EventType.SUBSCRIPTION_DELETED:
            return SubscriptionDeleted(
                **common,
                subscription=SubscriptionSnapshot.from_stripe(obj),
            )
    except KeyError as e:
        raise InvalidEventError(
            f"Event object is missing {e.args[0]!r}",
            details={"id": event_id, "type": event_type},
        ) from e

    return UnhandledEvent(**common)
