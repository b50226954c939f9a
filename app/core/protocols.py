"""
Protocol definitions for generic infrastructure services.

This module defines Protocol classes that specify interfaces
for generic infrastructure concerns like caching.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy substitution in tests

Available Protocols:
    CacheBackend: Cache operations interface (Django cache compatible)

Usage:
    from django.core.cache import cache
    from core.protocols import CacheBackend

    def claim(store: CacheBackend, key: str, ttl: int) -> bool:
        return bool(store.add(key, "claimed", timeout=ttl))

    claim(cache, "webhook:evt_123", 3600)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for cache backends.

    Compatible with Django's cache interface (locmem, django-redis).
    """

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get value from cache.

        Args:
            key: Cache key
            default: Value to return if key not found

        Returns:
            Cached value or default
        """
        ...

    def add(self, key: str, value: Any, timeout: int | None = None) -> bool:
        """
        Set value only if the key does not exist yet.

        Args:
            key: Cache key
            value: Value to cache
            timeout: Expiration time in seconds (None for no expiry)

        Returns:
            True if the value was stored, False if the key already existed
        """
        ...

    def set(self, key: str, value: Any, timeout: int | None = None) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            timeout: Expiration time in seconds (None for no expiry)
        """
        ...

    def delete(self, key: str) -> bool:
        """
        Delete value from cache.

        Args:
            key: Cache key to delete

        Returns:
            True if key was deleted, False if it didn't exist
        """
        ...
