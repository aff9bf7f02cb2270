from abc import ABC, abstractmethod
from channels.db import database_sync_to_async
from directory import lookup
import logging

logger = logging.getLogger('notifications.channels')


class BaseHandler(ABC):
    """
    A channel sender. ``send`` reports the transport outcome as a bool and
    never raises for transport errors; it must not touch the ledger.
    """
    channel = None

    def __init__(self, credentials: dict = None):
        self.credentials = credentials or {}

    @abstractmethod
    async def send(self, delivery) -> bool:
        pass

    def _render_content(self, delivery) -> dict:
        notification = delivery.notification
        return {
            'title': notification.title,
            'body': notification.message,
            'data': {
                'notification_id': str(notification.id),
                'delivery_id': str(delivery.id),
                'type': notification.type,
            },
        }

    async def _get_recipient(self, delivery):
        user = await database_sync_to_async(lookup.get_user)(delivery.user_id)
        if user is None:
            logger.warning(f"{self.channel}: recipient {delivery.user_id} not in directory")
        return user
