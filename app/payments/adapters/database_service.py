"""
HTTP client for the internal user/subscription database service.

The database service owns the User and Subscription records; this
service only reads and writes them over HTTP. Every call surfaces the
downstream status untouched to the caller:

- 404                  -> RecordNotFoundError (or None for lookups that allow it)
- other 4xx/5xx        -> DatabaseServiceError(status_code, response_body)
- refused/timeout/DNS  -> DatabaseServiceUnavailableError

No retry logic lives here. A silently retried write could duplicate a
Subscription record, so database failures are always propagated.

Usage:
    from payments.adapters import DatabaseServiceClient

    db = DatabaseServiceClient(config)
    record = db.find_subscription_by_stripe_id("sub_123")
    if record is not None:
        db.update_subscription(record_id(record), {"status": "canceled"})
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests

from payments.exceptions import (
    DatabaseServiceError,
    DatabaseServiceUnavailableError,
    RecordNotFoundError,
)

if TYPE_CHECKING:
    from payments.config import PaymentServiceConfig


def record_id(record: dict[str, Any]) -> Any:
    """
    Return the internal primary key of a database service record.

    Subscription records expose it as internalId; older responses only
    carry id.
    """
    return record.get("internalId") or record.get("id")


class DatabaseServiceClient:
    """
    Narrow typed accessors over the database service HTTP API.

    Attributes:
        base_url: Database service base URL (no trailing slash)
        timeout: Per-request timeout in seconds
        session: requests.Session used for all calls (injectable for tests)
    """

    def __init__(
        self,
        config: PaymentServiceConfig,
        session: requests.Session | None = None,
    ):
        self.base_url = config.db_service_url
        self.timeout = config.db_service_timeout
        self.session = session or requests.Session()

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this client."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Users
    # =========================================================================

    def get_user_by_id(self, user_id: Any) -> dict[str, Any]:
        """
        Fetch a user by internal id.

        Raises:
            RecordNotFoundError: No such user
        """
        return self._request("GET", f"/api/users/{quote(str(user_id))}")

    def get_user_by_email(self, email: str) -> dict[str, Any]:
        """
        Fetch a user by email.

        Raises:
            RecordNotFoundError: No user registered with this email
        """
        return self._request("GET", f"/api/users/email/{quote(email, safe='@')}")

    def update_user_subscription(
        self, email: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Write the subscription projection on a user record.

        Args:
            email: User email
            data: Fields to write, among isSubscribed, stripeSubscriptionId,
                subscriptionEndDate

        Returns:
            Updated user record
        """
        return self._request(
            "PUT",
            f"/api/users/subscription/{quote(email, safe='@')}",
            json=data,
        )

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def create_subscription(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Create a Subscription record.

        Returns:
            Created record, including its internalId
        """
        return self._request("POST", "/api/subscriptions", json=data)

    def update_subscription(
        self, internal_id: Any, data: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Patch a Subscription record by internal id.

        Raises:
            RecordNotFoundError: The record no longer exists
        """
        return self._request(
            "PATCH",
            f"/api/subscriptions/{quote(str(internal_id))}",
            json=data,
        )

    def find_subscription_by_stripe_id(
        self, stripe_subscription_id: str
    ) -> dict[str, Any] | None:
        """
        Look up a Subscription record by its Stripe subscription id.

        Returns:
            The record, or None when the database service answers 404
            (or an empty body)
        """
        try:
            record = self._request(
                "GET",
                f"/api/subscriptions/stripe/{quote(stripe_subscription_id)}",
            )
        except RecordNotFoundError:
            return None
        return record or None

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Issue one request and translate the outcome.

        Returns:
            Decoded JSON body (None for an empty body)

        Raises:
            RecordNotFoundError: 404
            DatabaseServiceError: Any other error status
            DatabaseServiceUnavailableError: Connection-level failure
        """
        logger = self.get_logger()
        url = f"{self.base_url}{path}"
        log_context = {"operation": f"{method} {path.split('/')[2]}", "method": method}
        start_time = time.time()

        try:
            response = self.session.request(
                method,
                url,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "Database service unreachable",
                extra={**log_context, "duration_ms": duration_ms, "error": str(e)},
            )
            raise DatabaseServiceUnavailableError(
                f"Database service unreachable: {e}",
                details={"method": method, "path": path},
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        log_context = {
            **log_context,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }

        if response.status_code == 404:
            logger.info("Database service record not found", extra=log_context)
            raise RecordNotFoundError(
                f"Record not found: {method} {path}",
                status_code=404,
                response_body=_body(response),
            )

        if response.status_code >= 400:
            body = _body(response)
            logger.error(
                "Database service request failed",
                extra={**log_context, "response_body": body},
            )
            raise DatabaseServiceError(
                f"Database service returned {response.status_code} for {method} {path}",
                status_code=response.status_code,
                response_body=body,
            )

        logger.debug("Database service request completed", extra=log_context)
        return _body(response)


def _body(response: requests.Response) -> Any:
    """Decode a JSON body, falling back to the raw text."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
