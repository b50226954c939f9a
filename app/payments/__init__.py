"""
Payments app for Stripe integration.

This app handles:
- Subscription checkout sessions (create, status, cancel, plans)
- Webhook event handling and reconciliation with the database service
- Lifecycle notifications through the notifications app

Related apps:
    - notifications: Delivery of subscription lifecycle notifications
    - core: Exceptions, service result and helpers

Usage:
    from payments.services import get_session_service

    # Start a subscription purchase
    session = get_session_service().create_subscription_session(
        None, "monthly", "a@b.com"
    )

    # Handle webhook
    outcome = get_webhook_processor().process(request.body, request.headers)
"""
