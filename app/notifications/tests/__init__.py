"""
Tests for notifications app.

This package contains test modules for:
- test_categories.py: Category routing and payload serialization
- test_dispatcher.py: Validation, bounded retry and queued hand-off
- test_tasks.py: Queued delivery task

Usage:
    pytest notifications/tests/
    pytest notifications/tests/test_dispatcher.py
"""
