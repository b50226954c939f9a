"""
URL configuration for the payments app.

Routes:
    - POST /create-subscription/ - Start hosted checkout
    - GET /subscription/<id>/ - Subscription status
    - POST /cancel-subscription/ - Cancel at period end
    - GET /plans/ - Active recurring plans
    - POST /webhook/ - Stripe webhook endpoint

All routes are prefixed with /api/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    urlpatterns = [
        path("api/payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    CancelSubscriptionView,
    CreateSubscriptionView,
    PlanListView,
    SubscriptionStatusView,
)
from payments.webhooks.views import stripe_webhook

app_name = "payments"

urlpatterns = [
    path(
        "create-subscription/",
        CreateSubscriptionView.as_view(),
        name="create_subscription",
    ),
    path(
        "subscription/<str:subscription_id>/",
        SubscriptionStatusView.as_view(),
        name="subscription_status",
    ),
    path(
        "cancel-subscription/",
        CancelSubscriptionView.as_view(),
        name="cancel_subscription",
    ),
    path("plans/", PlanListView.as_view(), name="plans"),
    # Webhook endpoints
    path("webhook/", stripe_webhook, name="stripe_webhook"),
]
