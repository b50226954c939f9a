"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for
reconciling internal records with billing events.

Each handler receives a decoded event variant (payments.events) and a
HandlerContext carrying the collaborators. Within one event, calls are
made sequentially and in a fixed order:

    1. Initial lookups (internal user, internal subscription, Stripe
       subscription). Failures propagate so the provider redelivers.
    2. Subscription record write. Failures propagate.
    3. User projection write. Best-effort: failures are logged.
    4. Notifications. Best-effort: failures are logged.

An update/delete event whose subscription has no internal record is
logged as an error and acknowledged, so permanently orphaned events do
not trigger endless provider retries.

Usage:
    from payments.webhooks.handlers import dispatch_event, register_handler

    # Register a handler
    @register_handler("customer.created")
    def handle_customer_created(event, context) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_event(event, context)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from django.utils import timezone

from core.exceptions import NotFoundError
from core.helpers import isoformat, mask_email
from core.services import ServiceResult
from notifications.categories import NotificationCategory
from notifications.exceptions import NotificationError
from notifications.payloads import (
    CancellationData,
    InvoiceReceiptData,
    PaymentFailedData,
    RenewalData,
    StatusChangeData,
    SubscriptionEndedData,
    SubscriptionStartData,
)
from payments.adapters.database_service import record_id
from payments.events import EventType
from payments.exceptions import (
    DatabaseServiceError,
    DatabaseServiceUnavailableError,
    RecordNotFoundError,
    StripeError,
)

if TYPE_CHECKING:
    from notifications.dispatcher import NotificationDispatcher
    from notifications.payloads import NotificationPayload
    from payments.adapters import (
        DatabaseServiceClient,
        StripeAdapter,
        SubscriptionSnapshot,
    )
    from payments.config import PaymentServiceConfig
    from payments.events import (
        CheckoutSessionCompleted,
        Event,
        InvoicePaid,
        InvoicePaymentFailed,
        SubscriptionDeleted,
        SubscriptionUpdated,
    )


logger = logging.getLogger(__name__)

# Statuses in which the user keeps access
ENTITLED_STATUSES = frozenset({"active", "trialing"})

STATUS_DELETED = "deleted"


@dataclass(frozen=True)
class HandlerContext:
    """Collaborators shared by all handlers."""

    config: PaymentServiceConfig
    gateway: StripeAdapter
    db: DatabaseServiceClient
    notifier: NotificationDispatcher


Handler = Callable[[Any, HandlerContext], ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Handler] = {}


def register_handler(event_type: str) -> Callable[[Handler], Handler]:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Stripe event type (e.g., "invoice.paid")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Handler) -> Handler:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_event(event: Event, context: HandlerContext) -> ServiceResult:
    """
    Dispatch a decoded event to exactly one handler.

    Event types without a handler are logged and acknowledged as a no-op,
    so new provider event types never fail delivery.

    Args:
        event: Decoded event variant
        context: Handler collaborators

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(event.type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {event.type}",
            extra={"stripe_event_id": event.id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event.type} to handler",
        extra={"stripe_event_id": event.id, "event_type": event.type},
    )

    return handler(event, context)


# =============================================================================
# Reconciliation
# =============================================================================


def subscription_record_fields(snapshot: SubscriptionSnapshot) -> dict[str, Any]:
    """Subscription record fields derived from the Stripe subscription."""
    amount = snapshot.amount
    return {
        "planType": snapshot.plan_name,
        "status": snapshot.status,
        "isActive": snapshot.is_active,
        "autoRenew": snapshot.auto_renew,
        "startDate": isoformat(snapshot.current_period_start),
        "endDate": isoformat(snapshot.current_period_end),
        "nextPaymentDate": isoformat(snapshot.current_period_end),
        "stripeSubscriptionId": snapshot.id,
        "stripeCustomerId": snapshot.customer_id,
        "amount": float(amount) if amount is not None else None,
        "currency": snapshot.currency,
    }


def reconcile_subscription(
    context: HandlerContext,
    snapshot: SubscriptionSnapshot,
    email: str,
    user: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Bring internal records in line with a paid Stripe subscription.

    Single path for checkout completion and paid invoices:

        1. Look up the Subscription record by Stripe subscription id
        2. PATCH it if it exists, otherwise POST a new record for the
           user resolved by email
        3. Write the user projection (best-effort)

    Replaying the same event converges on the same field values.

    Args:
        context: Handler collaborators
        snapshot: Current Stripe subscription
        email: Subscriber email
        user: Internal user, if already resolved

    Returns:
        The written Subscription record

    Raises:
        RecordNotFoundError: No internal user for email (record creation)
        DatabaseServiceError: Subscription record write failed
        DatabaseServiceUnavailableError: Database service unreachable
    """
    fields = {
        **subscription_record_fields(snapshot),
        "lastPaymentDate": isoformat(timezone.now()),
    }
    log_context = {
        "stripe_subscription_id": snapshot.id,
        "email": mask_email(email),
    }

    existing = context.db.find_subscription_by_stripe_id(snapshot.id)
    if existing is not None:
        internal_id = record_id(existing)
        record = context.db.update_subscription(internal_id, fields) or existing
        logger.info(
            "Subscription record updated",
            extra={**log_context, "internal_id": internal_id},
        )
    else:
        if user is None:
            user = context.db.get_user_by_email(email)
        record = context.db.create_subscription({**fields, "userId": user.get("id")})
        logger.info(
            "Subscription record created",
            extra={**log_context, "internal_id": record_id(record or {})},
        )

    update_user_projection(
        context,
        email,
        {
            "isSubscribed": snapshot.status in ENTITLED_STATUSES,
            "stripeSubscriptionId": snapshot.id,
            "subscriptionEndDate": isoformat(snapshot.current_period_end),
        },
    )
    return record


def update_user_projection(
    context: HandlerContext, email: str | None, data: dict[str, Any]
) -> bool:
    """
    Write the subscription projection on the user record, best-effort.

    The Subscription record is authoritative; a failed projection write is
    logged and does not fail the event.

    Returns:
        True if the write succeeded
    """
    if not email:
        logger.warning(
            "Skipping user projection: no email",
            extra={"stripe_subscription_id": data.get("stripeSubscriptionId")},
        )
        return False
    try:
        context.db.update_user_subscription(email, data)
    except (DatabaseServiceError, DatabaseServiceUnavailableError) as e:
        logger.warning(
            "User subscription projection not updated",
            extra={"email": mask_email(email), "error": e.message},
        )
        return False
    return True


# =============================================================================
# Best-Effort Helpers
# =============================================================================


def resolve_customer_email(
    context: HandlerContext, customer_id: str | None, known: str | None = None
) -> str | None:
    """
    Return the subscriber email, asking Stripe when the event lacks it.

    Returns:
        Email, or None when it cannot be resolved (failure logged)
    """
    if known:
        return known
    if not customer_id:
        return None
    try:
        return context.gateway.retrieve_customer(customer_id).email
    except StripeError as e:
        logger.warning(
            "Could not resolve customer email",
            extra={"customer_id": customer_id, "error": e.message},
        )
        return None


def notify(
    context: HandlerContext,
    email: str | None,
    category: NotificationCategory,
    payload: NotificationPayload,
) -> bool:
    """
    Send a lifecycle notification; failures are logged, never raised.

    Returns:
        True if the notification was delivered (or queued)
    """
    try:
        context.notifier.send(email, category, payload)
    except NotificationError as e:
        logger.warning(
            "Notification not delivered",
            extra={
                "category": str(category),
                "email": mask_email(email),
                "error_code": e.error_code,
                "error": e.message,
            },
        )
        return False
    return True


def send_receipt(
    context: HandlerContext, email: str | None, invoice: InvoiceReceiptData
) -> bool:
    """Send an invoice receipt; failures are logged, never raised."""
    try:
        context.notifier.send_invoice_receipt(email, invoice)
    except NotificationError as e:
        logger.warning(
            "Invoice receipt not delivered",
            extra={
                "invoice_id": invoice.id,
                "email": mask_email(email),
                "error": e.message,
            },
        )
        return False
    return True


def _orphaned(event: Event, stripe_subscription_id: str) -> ServiceResult:
    logger.error(
        f"{event.type}: no internal subscription for Stripe subscription",
        extra={
            "stripe_event_id": event.id,
            "stripe_subscription_id": stripe_subscription_id,
        },
    )
    return ServiceResult.failure(
        f"Subscription {stripe_subscription_id} not found",
        error_code="SUBSCRIPTION_NOT_FOUND",
    )


# =============================================================================
# Checkout Handlers
# =============================================================================


@register_handler(EventType.CHECKOUT_SESSION_COMPLETED)
def handle_checkout_session_completed(
    event: CheckoutSessionCompleted, context: HandlerContext
) -> ServiceResult:
    """
    Activate a subscription after hosted checkout completes.

    Flow:
        1. Resolve the customer email (session, else Stripe customer)
        2. Resolve the internal user by email (propagates on failure)
        3. Fetch the subscription with price and product expanded
        4. Reconcile the Subscription record and user projection
        5. Send the "new" notification

    Returns:
        ServiceResult with the written Subscription record
    """
    log_context = {"stripe_event_id": event.id, "session_id": event.session_id}

    if not event.subscription_id:
        logger.info("Checkout session without subscription, ignored", extra=log_context)
        return ServiceResult.success(None)

    email = event.customer_email
    if not email and event.customer_id:
        email = context.gateway.retrieve_customer(event.customer_id).email
    if not email:
        raise NotFoundError(
            "Checkout session has no customer email",
            details={"session_id": event.session_id},
        )

    user = context.db.get_user_by_email(email)
    snapshot = context.gateway.retrieve_subscription(event.subscription_id)

    logger.info(
        "Processing checkout.session.completed",
        extra={
            **log_context,
            "stripe_subscription_id": snapshot.id,
            "email": mask_email(email),
        },
    )

    record = reconcile_subscription(context, snapshot, email, user=user)

    notify(
        context,
        email,
        NotificationCategory.NEW,
        SubscriptionStartData(
            subscription_id=snapshot.id,
            plan_type=snapshot.plan_name,
            start_date=snapshot.current_period_start,
            end_date=snapshot.current_period_end,
            amount=snapshot.amount,
            currency=snapshot.currency,
        ),
    )

    return ServiceResult.success(record)


# =============================================================================
# Invoice Handlers
# =============================================================================


@register_handler(EventType.INVOICE_PAID)
def handle_invoice_paid(event: InvoicePaid, context: HandlerContext) -> ServiceResult:
    """
    Extend a subscription after a successful payment.

    Flow:
        1. Ignore invoices not tied to a subscription
        2. Fetch the subscription from Stripe
        3. Reconcile the Subscription record and user projection
           (no record and no internal user: log, send the receipt and
           report USER_NOT_FOUND without failing the webhook)
        4. Send "renewed" (skipped for the subscription's first invoice,
           which checkout completion already announces)
        5. Send the invoice receipt

    Returns:
        ServiceResult with the written Subscription record
    """
    invoice = event.invoice
    log_context = {"stripe_event_id": event.id, "invoice_id": invoice.id}

    if not invoice.subscription_id:
        logger.info("Invoice without subscription, ignored", extra=log_context)
        return ServiceResult.success(None)

    snapshot = context.gateway.retrieve_subscription(invoice.subscription_id)
    email = resolve_customer_email(context, invoice.customer_id, invoice.customer_email)
    if not email:
        raise NotFoundError(
            "Invoice has no resolvable customer email",
            details={"invoice_id": invoice.id},
        )

    logger.info(
        "Processing invoice.paid",
        extra={
            **log_context,
            "stripe_subscription_id": snapshot.id,
            "billing_reason": invoice.billing_reason,
        },
    )

    receipt = InvoiceReceiptData(
        id=invoice.id,
        amount_paid=invoice.amount_paid,
        currency=invoice.currency,
        created=invoice.created,
        pdf_url=invoice.invoice_pdf,
        hosted_invoice_url=invoice.hosted_invoice_url,
    )

    try:
        record = reconcile_subscription(context, snapshot, email)
    except RecordNotFoundError as e:
        logger.error(
            "invoice.paid: no internal user for subscriber",
            extra={
                **log_context,
                "stripe_subscription_id": snapshot.id,
                "email": mask_email(email),
                "error": e.message,
            },
        )
        send_receipt(context, email, receipt)
        return ServiceResult.failure(
            f"No internal user for subscription {snapshot.id}",
            error_code="USER_NOT_FOUND",
        )

    if not invoice.is_first_invoice:
        notify(
            context,
            email,
            NotificationCategory.RENEWED,
            RenewalData(
                subscription_id=snapshot.id,
                end_date=snapshot.current_period_end,
            ),
        )

    send_receipt(context, email, receipt)

    return ServiceResult.success(record)


@register_handler(EventType.INVOICE_PAYMENT_FAILED)
def handle_invoice_payment_failed(
    event: InvoicePaymentFailed, context: HandlerContext
) -> ServiceResult:
    """
    Warn the subscriber that a payment failed.

    No record changes: the following customer.subscription.updated event
    carries the resulting status (past_due, unpaid).
    """
    invoice = event.invoice
    email = resolve_customer_email(context, invoice.customer_id, invoice.customer_email)
    amount_due = invoice.amount_due if invoice.amount_due is not None else 0

    logger.info(
        "Processing invoice.payment_failed",
        extra={"stripe_event_id": event.id, "invoice_id": invoice.id},
    )

    delivered = notify(
        context,
        email,
        NotificationCategory.PAYMENT_FAILED,
        PaymentFailedData(
            invoice_id=invoice.id,
            amount_due=f"{amount_due:.2f}",
            currency=invoice.currency,
            subscription_id=invoice.subscription_id,
        ),
    )
    return ServiceResult.success({"notified": delivered})


# =============================================================================
# Subscription Handlers
# =============================================================================


def status_change_notification(
    event: SubscriptionUpdated,
) -> tuple[NotificationCategory, NotificationPayload]:
    """
    Pick the notification for a subscription update.

    - cancel_at_period_end set       -> cancellation_scheduled
    - status canceled                -> cancelled
    - was scheduled, now active      -> reactivated
    - anything else                  -> updated
    """
    subscription = event.subscription

    if subscription.cancel_at_period_end:
        return NotificationCategory.CANCELLATION_SCHEDULED, CancellationData(
            subscription_id=subscription.id,
            end_date=subscription.effective_end,
        )
    if subscription.status == "canceled":
        return NotificationCategory.CANCELLED, CancellationData(
            subscription_id=subscription.id,
            end_date=subscription.ended_at or subscription.effective_end,
        )
    if event.was_scheduled_for_cancellation and subscription.is_active:
        return NotificationCategory.REACTIVATED, StatusChangeData(
            subscription_id=subscription.id,
            new_status=subscription.status,
            previous_status=event.previous_status,
            end_date=subscription.current_period_end,
        )
    return NotificationCategory.UPDATED, StatusChangeData(
        subscription_id=subscription.id,
        new_status=subscription.status,
        previous_status=event.previous_status,
        end_date=subscription.current_period_end,
    )


@register_handler(EventType.SUBSCRIPTION_UPDATED)
def handle_subscription_updated(
    event: SubscriptionUpdated, context: HandlerContext
) -> ServiceResult:
    """
    Mirror a subscription change into the internal record.

    Flow:
        1. Find the internal record by Stripe subscription id
           (orphaned events are logged and acknowledged)
        2. PATCH status, isActive, autoRenew and endDate
        3. Write the user projection (best-effort). A scheduled
           cancellation keeps the user subscribed until the period ends.
        4. Send the notification chosen by status_change_notification

    Returns:
        ServiceResult with the updated record
    """
    subscription = event.subscription
    log_context = {
        "stripe_event_id": event.id,
        "stripe_subscription_id": subscription.id,
    }

    existing = context.db.find_subscription_by_stripe_id(subscription.id)
    if existing is None:
        return _orphaned(event, subscription.id)

    internal_id = record_id(existing)
    record = context.db.update_subscription(
        internal_id,
        {
            "status": subscription.status,
            "isActive": subscription.is_active,
            "autoRenew": subscription.auto_renew,
            "endDate": isoformat(subscription.effective_end),
        },
    )
    logger.info(
        "Subscription record updated",
        extra={
            **log_context,
            "internal_id": internal_id,
            "status": subscription.status,
            "cancel_at_period_end": subscription.cancel_at_period_end,
        },
    )

    email = resolve_customer_email(context, subscription.customer_id)
    update_user_projection(
        context,
        email,
        {
            "isSubscribed": subscription.status in ENTITLED_STATUSES,
            "stripeSubscriptionId": subscription.id,
            "subscriptionEndDate": isoformat(subscription.effective_end),
        },
    )

    category, payload = status_change_notification(event)
    notify(context, email, category, payload)

    return ServiceResult.success(record or existing)


@register_handler(EventType.SUBSCRIPTION_DELETED)
def handle_subscription_deleted(
    event: SubscriptionDeleted, context: HandlerContext
) -> ServiceResult:
    """
    Close a subscription that has really ended.

    The record is kept with a terminal status; nothing is hard-deleted.

    Flow:
        1. Find the internal record by Stripe subscription id
           (orphaned events are logged and acknowledged)
        2. PATCH status=deleted, isActive=false
        3. Clear the user projection (best-effort)
        4. Send the "ended" notification

    Returns:
        ServiceResult with the updated record
    """
    subscription = event.subscription
    ended_at = subscription.ended_at or subscription.effective_end

    existing = context.db.find_subscription_by_stripe_id(subscription.id)
    if existing is None:
        return _orphaned(event, subscription.id)

    internal_id = record_id(existing)
    record = context.db.update_subscription(
        internal_id,
        {
            "status": STATUS_DELETED,
            "isActive": False,
            "autoRenew": False,
            "endDate": isoformat(ended_at),
        },
    )
    logger.info(
        "Subscription record closed",
        extra={
            "stripe_event_id": event.id,
            "stripe_subscription_id": subscription.id,
            "internal_id": internal_id,
        },
    )

    email = resolve_customer_email(context, subscription.customer_id)
    update_user_projection(
        context,
        email,
        {
            "isSubscribed": False,
            "stripeSubscriptionId": None,
            "subscriptionEndDate": isoformat(ended_at),
        },
    )

    notify(
        context,
        email,
        NotificationCategory.ENDED,
        SubscriptionEndedData(subscription_id=subscription.id, ended_at=ended_at),
    )

    return ServiceResult.success(record or existing)
