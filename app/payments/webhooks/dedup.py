"""
Time-windowed store of processed webhook event ids.

Stripe may deliver the same event more than once. Before any handler
side effect the processor claims the event id with an atomic cache.add;
only the delivery that wins the claim runs the handler.

States per event id (cache value):
    processing  claimed, handler running
    processed   handler finished

A claim is released when the handler raises so the provider's next
delivery can retry. Cache outages fail open: the event is processed,
at the cost of possible duplicate side effects.

Usage:
    store = ProcessedEventStore(cache, ttl=86400)
    if store.claim(event.id):
        try:
            handle(event)
        except Exception:
            store.release(event.id)
            raise
        store.mark_processed(event.id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.protocols import CacheBackend


logger = logging.getLogger(__name__)

KEY_PREFIX = "payments:webhook_event:"
PROCESSING = "processing"
PROCESSED = "processed"


class ProcessedEventStore:
    """De-duplication window keyed by provider event id."""

    def __init__(self, cache: CacheBackend, ttl: int):
        self.cache = cache
        self.ttl = ttl

    def _key(self, event_id: str) -> str:
        return f"{KEY_PREFIX}{event_id}"

    def claim(self, event_id: str) -> bool:
        """
        Claim an event id for processing.

        Returns:
            False if the id was already claimed or processed inside the
            window, True otherwise (including when the cache is down)
        """
        try:
            added = self.cache.add(self._key(event_id), PROCESSING, timeout=self.ttl)
        except Exception:
            logger.warning(
                "Event de-duplication unavailable, processing anyway",
                extra={"stripe_event_id": event_id},
                exc_info=True,
            )
            return True
        # django-redis returns None instead of raising when it ignores exceptions
        return added is not False

    def mark_processed(self, event_id: str) -> None:
        """Record that the handler finished."""
        try:
            self.cache.set(self._key(event_id), PROCESSED, timeout=self.ttl)
        except Exception:
            logger.warning(
                "Could not mark event processed",
                extra={"stripe_event_id": event_id},
                exc_info=True,
            )

    def release(self, event_id: str) -> None:
        """Drop a claim so a later delivery can retry."""
        try:
            self.cache.delete(self._key(event_id))
        except Exception:
            logger.warning(
                "Could not release event claim",
                extra={"stripe_event_id": event_id},
                exc_info=True,
            )

    def status(self, event_id: str) -> str | None:
        """Return "processing", "processed" or None."""
        return self.cache.get(self._key(event_id))
