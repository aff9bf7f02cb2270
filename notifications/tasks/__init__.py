# Tasks package

from .tasks import release_scheduled_notifications, release_notification

__all__ = [
    'release_scheduled_notifications',
    'release_notification',
]
