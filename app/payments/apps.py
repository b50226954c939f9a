"""
Payments app configuration.

This app provides the billing side of the payment service:
- Subscription checkout sessions
- Stripe webhook processing and reconciliation
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        # Register webhook handlers
        from payments.webhooks import handlers  # noqa: F401
