"""
Explicit runtime configuration for the payment service.

Settings are read from the environment once (config/settings.py) and
projected here into a single immutable PaymentServiceConfig. Every
component (billing gateway, database client, notification dispatcher,
webhook processor, session service) receives this object in its
constructor instead of looking settings up on its own.

Usage:
    from payments.config import get_service_config

    config = get_service_config()
    price_id = config.price_id_for("monthly")

    # Tests build their own
    config = PaymentServiceConfig(stripe_secret_key="sk_test_x", ...)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from django.conf import settings

from core.helpers import backoff_delay


DELIVERY_MODE_INLINE = "inline"
DELIVERY_MODE_QUEUED = "queued"


@dataclass(frozen=True)
class PaymentServiceConfig:
    """
    Immutable configuration shared by all payment service components.

    Attributes:
        stripe_secret_key: Billing provider API key
        stripe_webhook_secret: Webhook signing secret ("" when unset)
        stripe_api_timeout: Billing provider call timeout (seconds)
        stripe_webhook_tolerance: Max signed-event age (seconds)
        plan_price_ids: Upper-cased plan type -> price id (configured plans only)
        webhook_test_mode_enabled: Allow unsigned test events
        webhook_dedup_ttl: Seconds a processed event id is remembered
        db_service_url: Database service base URL (no trailing slash)
        db_service_timeout: Database call timeout (seconds)
        notification_service_url: Notification service base URL
        notification_timeout: Per-attempt notification timeout (seconds)
        notification_max_attempts: Total delivery attempts (>= 1)
        notification_retry_base_delay: First retry delay, doubled per attempt
        notification_delivery_mode: "inline" or "queued"
        client_url: Client app base URL for checkout redirects
    """

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_timeout: int = 10
    stripe_webhook_tolerance: int = 300
    plan_price_ids: dict[str, str] = field(default_factory=dict)
    webhook_test_mode_enabled: bool = False
    webhook_dedup_ttl: int = 24 * 3600
    db_service_url: str = "http://localhost:3004"
    db_service_timeout: float = 10.0
    notification_service_url: str = "http://localhost:3006"
    notification_timeout: float = 10.0
    notification_max_attempts: int = 4
    notification_retry_base_delay: float = 1.0
    notification_delivery_mode: str = DELIVERY_MODE_INLINE
    client_url: str = "http://localhost:3000"

    def __post_init__(self) -> None:
        """Validate and normalize values after initialization."""
        if self.notification_max_attempts < 1:
            raise ValueError("notification_max_attempts must be at least 1")
        if self.notification_delivery_mode not in (
            DELIVERY_MODE_INLINE,
            DELIVERY_MODE_QUEUED,
        ):
            raise ValueError(
                f"Unknown notification_delivery_mode: {self.notification_delivery_mode}"
            )
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "db_service_url", self.db_service_url.rstrip("/"))
        object.__setattr__(
            self, "notification_service_url", self.notification_service_url.rstrip("/")
        )
        object.__setattr__(self, "client_url", self.client_url.rstrip("/"))
        object.__setattr__(
            self,
            "plan_price_ids",
            {
                plan.upper(): price_id
                for plan, price_id in self.plan_price_ids.items()
                if price_id
            },
        )

    @classmethod
    def from_settings(cls, source=None) -> PaymentServiceConfig:
        """
        Build the configuration from Django settings.

        Args:
            source: Settings object (defaults to django.conf.settings)

        Returns:
            PaymentServiceConfig populated from the environment-driven settings
        """
        source = source or settings
        return cls(
            stripe_secret_key=source.STRIPE_SECRET_KEY,
            stripe_webhook_secret=source.STRIPE_WEBHOOK_SECRET,
            stripe_api_timeout=source.STRIPE_API_TIMEOUT_SECONDS,
            stripe_webhook_tolerance=source.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            plan_price_ids={
                "MONTHLY": source.STRIPE_MONTHLY_PLAN_ID,
                "YEARLY": source.STRIPE_YEARLY_PLAN_ID,
            },
            webhook_test_mode_enabled=source.WEBHOOK_TEST_MODE_ENABLED,
            webhook_dedup_ttl=source.WEBHOOK_DEDUP_TTL_SECONDS,
            db_service_url=source.DB_SERVICE_URL,
            db_service_timeout=source.DB_SERVICE_TIMEOUT_SECONDS,
            notification_service_url=source.NOTIFICATION_SERVICE_URL,
            notification_timeout=source.NOTIFICATION_TIMEOUT_SECONDS,
            notification_max_attempts=source.NOTIFICATION_MAX_ATTEMPTS,
            notification_retry_base_delay=source.NOTIFICATION_RETRY_BASE_DELAY_SECONDS,
            notification_delivery_mode=source.NOTIFICATION_DELIVERY_MODE,
            client_url=source.CLIENT_URL,
        )

    def price_id_for(self, plan_type: str) -> str | None:
        """Return the configured price id for a plan type (case-insensitive)."""
        return self.plan_price_ids.get((plan_type or "").upper())

    @property
    def default_success_url(self) -> str:
        return f"{self.client_url}/subscription/success"

    @property
    def default_cancel_url(self) -> str:
        return f"{self.client_url}/subscription/cancel"

    def notification_retry_delays(self) -> list[float]:
        """
        Backoff series slept between notification attempts.

        One delay per retry, so len == notification_max_attempts - 1.

        Example:
            base=1.0, max_attempts=4 -> [1.0, 2.0, 4.0]
        """
        return [
            backoff_delay(
                attempt,
                base=self.notification_retry_base_delay,
                max_delay=float("inf"),
                jitter=False,
            )
            for attempt in range(self.notification_max_attempts - 1)
        ]


@lru_cache(maxsize=1)
def get_service_config() -> PaymentServiceConfig:
    """
    Return the process-wide configuration, built on first use.

    Call get_service_config.cache_clear() after changing settings in tests.
    """
    return PaymentServiceConfig.from_settings()
