"""
DRF views for the payments API.

This module provides API views for:
- Subscription checkout session creation
- Subscription status lookup
- Subscription cancellation
- Plan listing

Related files:
    - services.py: SubscriptionSessionService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/payments/create-subscription/ - Start hosted checkout
    GET /api/payments/subscription/<id>/ - Subscription status
    POST /api/payments/cancel-subscription/ - Cancel at period end
    GET /api/payments/plans/ - Active recurring plans
    POST /api/payments/webhook/ - Stripe webhook endpoint

Errors are returned as {"error": message, "error_code": code}.

Security:
    - Service-to-service API; callers are authenticated upstream
    - Webhook verifies Stripe signature
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    extend_schema,
    OpenApiExample,
    OpenApiResponse,
)
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from payments.exceptions import (
    InvalidPlanError,
    StripeError,
    StripeInvalidRequestError,
)
from payments.serializers import (
    CancelSubscriptionResponseSerializer,
    CancelSubscriptionSerializer,
    CreateSubscriptionSerializer,
    ErrorSerializer,
    PlanSerializer,
    SubscriptionSessionSerializer,
    SubscriptionStatusSerializer,
)
from payments.services import get_session_service

logger = logging.getLogger(__name__)


def error_response(error: BaseApplicationError, status_code: int) -> Response:
    """Render a domain error as {"error", "error_code"[, "details"]}."""
    return Response(error.to_dict(), status=status_code)


def invalid_request(serializer, message: str) -> Response:
    return Response(
        {"error": message, "errors": serializer.errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def stripe_error_response(error: StripeError) -> Response:
    """Bad ids and parameters are the caller's fault; anything else is ours."""
    if isinstance(error, StripeInvalidRequestError):
        return error_response(error, status.HTTP_400_BAD_REQUEST)
    return error_response(error, status.HTTP_500_INTERNAL_SERVER_ERROR)


class CreateSubscriptionView(APIView):
    """
    Start a subscription purchase.

    POST /api/payments/create-subscription/
    """

    @extend_schema(
        summary="Create subscription checkout session",
        description=(
            "Resolve the plan type to its Stripe price, create a Stripe customer "
            "when no customerId is given, and open a hosted Checkout Session in "
            "subscription mode."
        ),
        tags=["Payments"],
        request=CreateSubscriptionSerializer,
        responses={
            200: SubscriptionSessionSerializer,
            400: OpenApiResponse(
                response=ErrorSerializer,
                description="Missing fields or unknown plan type",
                examples=[
                    OpenApiExample(
                        "Invalid Plan",
                        value={
                            "error": "Invalid subscription plan: weekly",
                            "error_code": "INVALID_PLAN",
                        },
                    ),
                ],
            ),
            500: ErrorSerializer,
        },
        examples=[
            OpenApiExample(
                "Create Request",
                value={"planType": "monthly", "email": "user@example.com"},
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        """
        Create a checkout session.

        Request body:
            {
                "planType": "monthly",
                "email": "user@example.com",
                "customerId": "cus_xxx",        (optional)
                "successUrl": "https://...",    (optional)
                "cancelUrl": "https://..."      (optional)
            }

        Returns:
            {"customerId": "cus_xxx", "sessionId": "cs_xxx", "url": "https://..."}
        """
        serializer = CreateSubscriptionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer, "planType and email are required")
        data = serializer.validated_data

        try:
            session = get_session_service().create_subscription_session(
                customer_id=data.get("customerId") or None,
                plan_type=data["planType"],
                email=data["email"],
                success_url=data.get("successUrl") or None,
                cancel_url=data.get("cancelUrl") or None,
            )
        except InvalidPlanError as e:
            return error_response(e, status.HTTP_400_BAD_REQUEST)
        except StripeError as e:
            logger.error(
                "Subscription session creation failed",
                extra={"error_code": e.error_code, "error": e.message},
            )
            return stripe_error_response(e)

        return Response(session.to_dict())


class SubscriptionStatusView(APIView):
    """
    Read a subscription's billing status from Stripe.

    GET /api/payments/subscription/<subscription_id>/
    """

    @extend_schema(
        summary="Get subscription status",
        tags=["Payments"],
        responses={
            200: SubscriptionStatusSerializer,
            400: ErrorSerializer,
            500: ErrorSerializer,
        },
    )
    def get(self, request, subscription_id):
        try:
            result = get_session_service().get_subscription_status(subscription_id)
        except StripeError as e:
            logger.error(
                "Subscription status lookup failed",
                extra={"stripe_subscription_id": subscription_id, "error": e.message},
            )
            return stripe_error_response(e)

        return Response(result)


class CancelSubscriptionView(APIView):
    """
    Cancel a subscription at the end of its billing period.

    POST /api/payments/cancel-subscription/

    Internal records follow through the customer.subscription.updated
    webhook.
    """

    @extend_schema(
        summary="Cancel subscription at period end",
        tags=["Payments"],
        request=CancelSubscriptionSerializer,
        responses={
            200: OpenApiResponse(
                response=CancelSubscriptionResponseSerializer,
                description="Cancellation scheduled",
                examples=[
                    OpenApiExample(
                        "Success",
                        value={
                            "success": True,
                            "cancelAtPeriodEnd": True,
                            "currentPeriodEnd": "2025-02-01T00:00:00Z",
                        },
                    ),
                ],
            ),
            400: ErrorSerializer,
            500: ErrorSerializer,
        },
    )
    def post(self, request):
        serializer = CancelSubscriptionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer, "subscriptionId is required")
        subscription_id = serializer.validated_data["subscriptionId"]

        try:
            result = get_session_service().cancel_subscription(subscription_id)
        except StripeError as e:
            logger.error(
                "Subscription cancellation failed",
                extra={"stripe_subscription_id": subscription_id, "error": e.message},
            )
            return stripe_error_response(e)

        return Response(result)


class PlanListView(APIView):
    """
    List the plans offered for subscription.

    GET /api/payments/plans/

    Sourced live from Stripe: active recurring prices with their products.
    """

    @extend_schema(
        summary="List subscription plans",
        tags=["Payments"],
        responses={200: PlanSerializer(many=True), 500: ErrorSerializer},
    )
    def get(self, request):
        try:
            plans = get_session_service().list_plans()
        except StripeError as e:
            logger.error("Plan listing failed", extra={"error": e.message})
            return stripe_error_response(e)

        return Response(PlanSerializer(plans, many=True).data)
