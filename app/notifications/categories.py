"""
Notification categories and their routes on the notification service.

Every lifecycle category maps to one fixed endpoint and one body key:

    new                      -> /notifications/subscription/start
    renewed                  -> /notifications/subscription/renewed
    cancelled                -> /notifications/subscription/cancelled
    cancellation_scheduled   -> /notifications/subscription/cancelled
    payment_failed           -> /notifications/subscription/payment-failed  (paymentData)
    reactivated              -> /notifications/subscription/reactivated
    updated                  -> /notifications/subscription/updated
    ended                    -> /notifications/subscription/ended

All other categories send their data under "subscriptionData".
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db import models

from notifications.exceptions import UnknownCategoryError


INVOICE_PATH = "/notifications/invoice"

SUBSCRIPTION_DATA_KEY = "subscriptionData"
PAYMENT_DATA_KEY = "paymentData"


class NotificationCategory(models.TextChoices):
    """Subscription lifecycle notification categories."""

    NEW = "new", "Subscription started"
    RENEWED = "renewed", "Subscription renewed"
    CANCELLED = "cancelled", "Subscription cancelled"
    CANCELLATION_SCHEDULED = "cancellation_scheduled", "Cancellation scheduled"
    PAYMENT_FAILED = "payment_failed", "Payment failed"
    REACTIVATED = "reactivated", "Subscription reactivated"
    UPDATED = "updated", "Subscription updated"
    ENDED = "ended", "Subscription ended"


@dataclass(frozen=True)
class NotificationRoute:
    """Target endpoint path and body key for one category."""

    path: str
    payload_key: str = SUBSCRIPTION_DATA_KEY


ROUTES: dict[str, NotificationRoute] = {
    NotificationCategory.NEW: NotificationRoute("/notifications/subscription/start"),
    NotificationCategory.RENEWED: NotificationRoute(
        "/notifications/subscription/renewed"
    ),
    NotificationCategory.CANCELLED: NotificationRoute(
        "/notifications/subscription/cancelled"
    ),
    NotificationCategory.CANCELLATION_SCHEDULED: NotificationRoute(
        "/notifications/subscription/cancelled"
    ),
    NotificationCategory.PAYMENT_FAILED: NotificationRoute(
        "/notifications/subscription/payment-failed",
        payload_key=PAYMENT_DATA_KEY,
    ),
    NotificationCategory.REACTIVATED: NotificationRoute(
        "/notifications/subscription/reactivated"
    ),
    NotificationCategory.UPDATED: NotificationRoute(
        "/notifications/subscription/updated"
    ),
    NotificationCategory.ENDED: NotificationRoute("/notifications/subscription/ended"),
}


def parse_category(value: str | NotificationCategory) -> NotificationCategory:
    """
    Coerce a raw category value into the enum.

    Raises:
        UnknownCategoryError: value is not a known category
    """
    try:
        return NotificationCategory(value)
    except ValueError:
        raise UnknownCategoryError(
            f"Unknown notification category: {value!r}",
            details={"category": str(value)},
        ) from None


def route_for(category: str | NotificationCategory) -> NotificationRoute:
    """Return the route for a category, raising UnknownCategoryError."""
    return ROUTES[parse_category(category)]
