"""
Webhook endpoint view for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view hands the untouched request body to the WebhookProcessor and
maps the outcome onto the status codes Stripe's retry policy expects.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhook/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.exceptions import InvalidEventError, SignatureInvalidError
from payments.webhooks.processor import get_webhook_processor


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and process Stripe webhook events.

    Security:
    - Signature verification runs on request.body exactly as received;
      the body must not be parsed before this view
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        JsonResponse with status:
        - 200: {"received": true} for new events, plus "duplicate": true
          for events already received inside the de-duplication window
        - 400: {"error": ...} for signature or payload failures
        - 500: {"error": ...} when a handler failed; Stripe redelivers

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    try:
        outcome = get_webhook_processor().process(request.body, request.headers)
    except SignatureInvalidError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": e.message},
        )
        return JsonResponse({"error": f"Webhook Error: {e.message}"}, status=400)
    except InvalidEventError as e:
        logger.warning(
            "Webhook payload rejected",
            extra={"error": e.message, **e.details},
        )
        return JsonResponse({"error": f"Webhook Error: {e.message}"}, status=400)
    except Exception as e:
        logger.exception(f"Webhook handler failed: {type(e).__name__}")
        return JsonResponse({"error": "Webhook handler failed"}, status=500)

    return JsonResponse(outcome.to_response(), status=200)
