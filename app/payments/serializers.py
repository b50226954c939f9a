"""
DRF serializers for the payments API.

This module provides serializers for:
- Subscription session requests and responses
- Subscription status and cancellation
- Plan listings

Field names are camelCase to match the JSON contract the client
application and the other services already speak.

Related files:
    - views.py: Payment API views
    - services.py: SubscriptionSessionService

Usage:
    serializer = CreateSubscriptionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers


class CreateSubscriptionSerializer(serializers.Serializer):
    """
    Request body for POST /create-subscription.

    Fields:
        planType: "monthly" or "yearly"
        email: Subscriber email
        customerId: Existing Stripe customer (optional)
        successUrl: Redirect after payment (optional)
        cancelUrl: Redirect when checkout is abandoned (optional)
    """

    planType = serializers.CharField(max_length=32)
    email = serializers.EmailField()
    customerId = serializers.CharField(
        required=False, allow_blank=True, allow_null=True
    )
    successUrl = serializers.URLField(required=False, allow_blank=True)
    cancelUrl = serializers.URLField(required=False, allow_blank=True)


class SubscriptionSessionSerializer(serializers.Serializer):
    """Response body for POST /create-subscription."""

    customerId = serializers.CharField()
    sessionId = serializers.CharField()
    url = serializers.URLField(allow_null=True)


class SubscriptionStatusSerializer(serializers.Serializer):
    status = serializers.CharField()
    currentPeriodEnd = serializers.DateTimeField(allow_null=True)
    cancelAtPeriodEnd = serializers.BooleanField()


class CancelSubscriptionSerializer(serializers.Serializer):
    """Request body for POST /cancel-subscription."""

    subscriptionId = serializers.CharField(max_length=255)


class CancelSubscriptionResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    cancelAtPeriodEnd = serializers.BooleanField()
    currentPeriodEnd = serializers.DateTimeField(allow_null=True)


class PlanSerializer(serializers.Serializer):
    """
    A recurring price offered for subscription.

    Serializes PlanResult instances from the Stripe adapter.
    """

    id = serializers.CharField()
    productId = serializers.CharField(source="product_id", allow_null=True)
    name = serializers.CharField(allow_null=True)
    description = serializers.CharField(allow_null=True)
    amount = serializers.FloatField(allow_null=True)
    currency = serializers.CharField()
    interval = serializers.CharField(allow_null=True)
    intervalCount = serializers.IntegerField(source="interval_count", allow_null=True)


class ErrorSerializer(serializers.Serializer):
    error = serializers.CharField()
    error_code = serializers.CharField(required=False)
    details = serializers.DictField(required=False)
