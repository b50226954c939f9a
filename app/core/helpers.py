"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Retry backoff calculation
- PII masking for log output
- Epoch timestamp conversion

These utilities are pure infrastructure - they have no knowledge
of billing events, subscriptions, or notification categories.

Usage:
    from core.helpers import backoff_delay, mask_email, from_timestamp

    delay = backoff_delay(attempt=2, base=1.0, jitter=False)  # 4.0
    logger.info("Sending", extra={"email": mask_email(email)})
    period_end = from_timestamp(1735689600)
"""

from __future__ import annotations

import random
from datetime import datetime, timezone


def backoff_delay(
    attempt: int,
    base: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> float:
    """
    Calculate exponential backoff delay.

    Jitter prevents thundering herd when multiple workers retry simultaneously.
    Disable it where the total wait must be predictable.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        jitter: Add 0-25% random jitter (default: True)

    Returns:
        Delay in seconds

    Example:
        # Attempt 0: 1.0 seconds (1.0 - 1.25 with jitter)
        # Attempt 1: 2.0 seconds (2.0 - 2.5 with jitter)
        # Attempt 2: 4.0 seconds (4.0 - 5.0 with jitter)
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    if not jitter:
        return delay
    return delay + delay * random.uniform(0, 0.25)


def mask_email(email: str | None) -> str:
    """
    Mask the local part of an email address for logging.

    Args:
        email: Email address (may be None or malformed)

    Returns:
        Masked address, e.g. "j***@example.com"
    """
    if not email or "@" not in email:
        return "<none>" if not email else "***"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def from_timestamp(value: int | float | None) -> datetime | None:
    """
    Convert a Unix epoch timestamp to an aware UTC datetime.

    Args:
        value: Seconds since the epoch, or None

    Returns:
        Aware datetime in UTC, or None if value is None
    """
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Serialize an aware datetime as ISO 8601 with a trailing Z."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
