"""
Notifications app for subscription lifecycle messages.

This app provides:
- NotificationCategory with the endpoint and body key of each category
- Typed payloads for every category and for invoice receipts
- NotificationDispatcher with bounded retry and exponential backoff
- A Celery task for queued delivery with timer-based re-enqueue

Usage:
    from notifications.categories import NotificationCategory
    from notifications.dispatcher import NotificationDispatcher

    dispatcher = NotificationDispatcher(config)
    dispatcher.send("a@b.com", NotificationCategory.NEW, start_data)
"""
