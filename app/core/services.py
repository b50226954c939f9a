"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for handler outcomes
- BaseService: Base class with common service utilities

Pattern Comparison:
    - ServiceResult: Use for expected failures (orphaned events, skipped work)
    - Exceptions: Use for failures the caller must react to (unreachable
      services, bad signatures, unknown plans)

Usage:
    from core.services import BaseService, ServiceResult

    class SubscriptionSessionService(BaseService):
        def create_subscription_session(self, ...) -> SubscriptionSession:
            self.get_logger().info("Creating checkout session")
            ...

    # In a webhook handler
    if record is None:
        return ServiceResult.failure(
            "Subscription not found",
            error_code="SUBSCRIPTION_NOT_FOUND",
        )
    return ServiceResult.success(record)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code

    Usage:
        result = dispatch_event(event, context)
        if not result:
            logger.warning(f"Handler reported: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(success=False, error=error, error_code=error_code)

    def __bool__(self) -> bool:
        """Same as result.success."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Dependencies (config, adapters) are passed to __init__; services hold
    no per-request state.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")
