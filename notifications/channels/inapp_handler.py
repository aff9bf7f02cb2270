from .base_handler import BaseHandler
from notifications.gateway import gateway
from notifications.models import ChannelType
import logging

logger = logging.getLogger('notifications.channels.inapp')


class InAppHandler(BaseHandler):
    """
    Handler for real-time in-app notifications via WebSocket.

    The ledger row is the durable copy of the notification, so a recipient
    who is offline still counts as delivered; reachability is only logged.
    """
    channel = ChannelType.IN_APP.value

    async def send(self, delivery) -> bool:
        content = self._render_content(delivery)
        payload = {
            **delivery.notification.summary(),
            'delivery_id': str(delivery.id),
            'data': content['data'],
        }
        reachable = await gateway.send_to_user(delivery.user_id, payload)
        logger.info(f"INAPP delivery {delivery.id} to user {delivery.user_id} "
                    f"({'live' if reachable else 'offline, stored for inbox'})")
        return True
