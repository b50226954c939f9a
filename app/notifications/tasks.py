"""
Celery tasks for notification delivery.

Used when NOTIFICATION_DELIVERY_MODE is "queued": instead of sleeping
between attempts inside the webhook request, the dispatcher enqueues
deliver_notification, which makes one attempt per execution and
re-enqueues itself with a countdown while attempts remain.

Tasks:
    deliver_notification: Deliver one routed NotificationRequest

Design:
    - Tasks receive the request as plain data (NotificationRequest.to_dict())
    - The attempt number is the task's retry count
    - Countdown follows the same backoff series as inline delivery
    - Rejections (4xx/5xx) are permanent: logged, never retried

Usage:
    from notifications.tasks import deliver_notification

    # Called automatically by NotificationDispatcher in queued mode
    # Or manually:
    deliver_notification.delay(request.to_dict())
"""

from __future__ import annotations

import logging

from celery import shared_task

from core.helpers import mask_email
from notifications.dispatcher import NotificationRequest, get_dispatcher
from notifications.exceptions import (
    NotificationRejectedError,
    NotificationServiceUnavailableError,
)

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=True)
def deliver_notification(self, request_data: dict) -> bool:
    """
    Make one delivery attempt for a queued notification.

    Flow:
        1. Rebuild the NotificationRequest
        2. POST once to the notification service
        3. On success: done
        4. On rejection: log, done (permanent)
        5. On connection failure: re-enqueue with the next backoff delay,
           or log the final failure once attempts are exhausted

    Args:
        request_data: NotificationRequest.to_dict() output

    Returns:
        True if delivered, False on permanent failure or exhaustion

    Raises:
        celery.exceptions.Retry: To re-enqueue after a connection failure
    """
    request = NotificationRequest.from_dict(request_data)
    dispatcher = get_dispatcher()
    attempt = self.request.retries
    log_context = {
        "category": request.label,
        "recipient": mask_email(request.recipient),
        "attempt": attempt + 1,
        "task_id": self.request.id,
    }

    try:
        dispatcher.attempt(request, attempt)
    except NotificationRejectedError as e:
        logger.error(
            "Queued notification rejected",
            extra={**log_context, "status_code": e.status_code},
        )
        return False
    except NotificationServiceUnavailableError as e:
        if attempt >= len(dispatcher.retry_delays):
            logger.error(
                "Queued notification failed after all attempts",
                extra={**log_context, "attempts": dispatcher.max_attempts},
            )
            return False

        countdown = dispatcher.retry_delays[attempt]
        logger.warning(
            "Queued notification failed, re-enqueueing",
            extra={**log_context, "retry_in_seconds": countdown},
        )
        raise self.retry(
            exc=e,
            countdown=countdown,
            max_retries=len(dispatcher.retry_delays),
        )

    return True
