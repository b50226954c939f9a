"""
Tests for payments app.

This package contains test modules for:
- test_services.py: SubscriptionSessionService tests
- test_views.py: API endpoint tests

Adapter and webhook tests live beside their packages:
- adapters/tests/
- webhooks/tests/

Usage:
    pytest payments/tests/
    pytest payments/tests/test_services.py
"""
