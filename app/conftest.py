"""
Root pytest configuration for the payment service.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # De-duplication window in process memory, never a shared Redis
    settings.CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "payment-service-tests",
        }
    }

    # Notifications are delivered inline unless a test opts into the queue
    settings.NOTIFICATION_DELIVERY_MODE = "inline"
    settings.CELERY_TASK_ALWAYS_EAGER = True


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_processor.py, test_tasks.py, etc. → integration
    - test_events.py, test_categories.py, test_config.py, etc. → unit
    - Unmatched files → unit

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_processor.py",
        "test_handlers.py",
        "test_tasks.py",
        "test_services.py",
    ]

    for item in items:
        # Skip if test already has unit/integration marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _reset_process_state():
    """Rebuild cached configuration and clear the cache around every test."""
    from django.core.cache import cache

    from payments.config import get_service_config
    from payments.webhooks.processor import get_webhook_processor

    get_service_config.cache_clear()
    get_webhook_processor.cache_clear()
    cache.clear()
    yield
    get_service_config.cache_clear()
    get_webhook_processor.cache_clear()
    cache.clear()
