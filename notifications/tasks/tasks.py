from asgiref.sync import async_to_sync
from celery import shared_task
from django.utils import timezone
from notifications.queue import delivery_queue
from notifications.services.notification_service import notification_service
from notifications.utils.exceptions import NotificationNotFound
import logging

logger = logging.getLogger('notifications.tasks')


def _drain_queue():
    # The worker has no ASGI loop; process what this process enqueued before returning
    counts = async_to_sync(delivery_queue.drain)()
    if counts:
        logger.info(f"Worker drained delivery queue: {counts}")
    return counts


@shared_task
def release_scheduled_notifications():
    released = notification_service.release_due_notifications(timezone.now())
    counts = _drain_queue()
    return {'released': released, 'processed': counts}


@shared_task
def release_notification(notification_id: str):
    try:
        enqueued = notification_service.release_notification(notification_id)
    except NotificationNotFound:
        logger.warning(f"Notification {notification_id} not found; nothing to release")
        return {'enqueued': 0, 'processed': {}}
    counts = _drain_queue()
    return {'enqueued': enqueued, 'processed': counts}
