"""
Celery configuration for the payment service.

Celery runs background work that must not block webhook acknowledgement:
- Queued notification delivery with timer-based retries (countdown re-enqueue)

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    # Define a task in any app's tasks.py:
    from celery import shared_task

    @shared_task
    def deliver_notification(email, category, data):
        ...

    # Call the task asynchronously:
    deliver_notification.delay(email, "renewed", {...})

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
