"""
Core Application - Infrastructure & Base Classes

This app contains infrastructure code shared by the payment and
notification apps:

- Generic, reusable base classes (no billing-specific logic)
- Clear extension points for domain apps
- Infrastructure concerns separated from business logic

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input validation failures
    - NotFoundError: Resource not found
    - ExternalServiceError: Downstream service failures
    - UpstreamUnavailableError: Downstream service unreachable

Protocols (import from core.protocols):
    - CacheBackend: Generic cache interface

Helpers (import from core.helpers):
    - backoff_delay: Exponential backoff with optional jitter
    - mask_email: PII masking for logs
    - from_timestamp / isoformat: Epoch and ISO 8601 conversion

Views (import from core.views):
    - health_check: Liveness endpoint

Note:
    Business logic should NOT go here. Extend core classes in your domain apps.
"""

from .exceptions import (
    BaseApplicationError,
    ExternalServiceError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from .helpers import backoff_delay, from_timestamp, isoformat, mask_email
from .protocols import CacheBackend
from .services import BaseService, ServiceResult

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ExternalServiceError",
    "UpstreamUnavailableError",
    # Protocols
    "CacheBackend",
    # Helpers
    "backoff_delay",
    "from_timestamp",
    "isoformat",
    "mask_email",
]
