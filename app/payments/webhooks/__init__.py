"""
Webhook handling for billing events from Stripe.

This module provides the view, processor and handlers for Stripe webhooks.
Webhooks are verified, de-duplicated by event id and reconciled against
the database service before notifications are sent.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhook/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_event, register_handler
from payments.webhooks.processor import WebhookProcessor, get_webhook_processor
from payments.webhooks.views import stripe_webhook

__all__ = [
    "WebhookProcessor",
    "dispatch_event",
    "get_webhook_processor",
    "register_handler",
    "stripe_webhook",
]
