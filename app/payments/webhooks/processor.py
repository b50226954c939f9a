"""
Webhook processing pipeline.

The WebhookProcessor turns one raw webhook request into at most one
handler run:

    1. Verify the request with the injected EventVerifier
    2. Decode the payload into a typed event
    3. Claim the event id in the de-duplication window
    4. Dispatch to the registered handler
    5. Mark the event processed (or release the claim if the handler raised)

Steps 1-2 happen before any side effect, so failures there are safe for
the provider to retry.

Usage:
    from payments.webhooks.processor import get_webhook_processor

    outcome = get_webhook_processor().process(request.body, request.headers)
    return JsonResponse(outcome.to_response())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from django.core.cache import cache

from core.services import ServiceResult
from payments.events import decode_event
from payments.webhooks.dedup import ProcessedEventStore
from payments.webhooks.handlers import HandlerContext, dispatch_event
from payments.webhooks.verifiers import build_verifier

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payments.webhooks.verifiers import EventVerifier


logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    """
    Result of processing one webhook request.

    Attributes:
        event_id: Provider event id
        event_type: Provider event type
        duplicate: True if the event was already claimed inside the window
        result: Handler result (None for duplicates)
    """

    event_id: str
    event_type: str
    duplicate: bool = False
    result: ServiceResult | None = None

    def to_response(self) -> dict[str, Any]:
        response: dict[str, Any] = {"received": True}
        if self.duplicate:
            response["duplicate"] = True
        return response


class WebhookProcessor:
    """Verifies, de-duplicates and dispatches webhook events."""

    def __init__(
        self,
        verifier: EventVerifier,
        context: HandlerContext,
        store: ProcessedEventStore,
    ):
        self.verifier = verifier
        self.context = context
        self.store = store

    def process(self, payload: bytes, headers: Mapping[str, str]) -> WebhookOutcome:
        """
        Process one webhook request.

        Args:
            payload: Raw request body, exactly as received
            headers: Request headers

        Returns:
            WebhookOutcome

        Raises:
            SignatureInvalidError: Request could not be authenticated
            InvalidEventError: Payload is not a well-formed event
            Exception: Anything the handler raised; the claim is released
        """
        event = decode_event(self.verifier.verify(payload, headers))
        log_context = {"stripe_event_id": event.id, "event_type": event.type}

        logger.info(f"Received Stripe webhook: {event.type}", extra=log_context)

        if not self.store.claim(event.id):
            logger.info(
                "Webhook already received, skipping",
                extra={**log_context, "status": self.store.status(event.id)},
            )
            return WebhookOutcome(event.id, event.type, duplicate=True)

        try:
            result = dispatch_event(event, self.context)
        except Exception:
            self.store.release(event.id)
            raise

        self.store.mark_processed(event.id)

        if result.success:
            logger.info("Webhook processed", extra=log_context)
        else:
            logger.warning(
                "Webhook acknowledged without reconciliation",
                extra={
                    **log_context,
                    "error": result.error,
                    "error_code": result.error_code,
                },
            )

        return WebhookOutcome(event.id, event.type, result=result)


@lru_cache(maxsize=1)
def get_webhook_processor() -> WebhookProcessor:
    """
    Build the process-wide processor from the service configuration.

    Collaborators are constructed once; call get_webhook_processor.cache_clear()
    after changing settings.
    """
    from notifications.dispatcher import NotificationDispatcher
    from payments.adapters import DatabaseServiceClient, StripeAdapter
    from payments.config import get_service_config

    config = get_service_config()
    gateway = StripeAdapter(config)
    context = HandlerContext(
        config=config,
        gateway=gateway,
        db=DatabaseServiceClient(config),
        notifier=NotificationDispatcher(config),
    )
    return WebhookProcessor(
        verifier=build_verifier(config, gateway),
        context=context,
        store=ProcessedEventStore(cache, ttl=config.webhook_dedup_ttl),
    )
