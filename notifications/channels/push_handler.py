from .base_handler import BaseHandler
from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async
from firebase_admin import credentials, messaging, initialize_app, get_app
from notifications.models import ChannelType, DeviceToken
from typing import List
import logging

logger = logging.getLogger('notifications.channels.push')

FIREBASE_APP_NAME = 'schoolhub-notifications'


class PushHandler(BaseHandler):
    """
    Push notification handler with Firebase Cloud Messaging.

    Sends to every active device token the recipient has registered; the
    delivery succeeds when at least one device accepts the message.
    """
    channel = ChannelType.PUSH.value

    def __init__(self, credentials: dict = None):
        super().__init__(credentials)
        self._firebase_app = None

    def _get_firebase_app(self):
        """Get or create Firebase app instance"""
        if self._firebase_app is None:
            try:
                self._firebase_app = get_app(FIREBASE_APP_NAME)
            except ValueError:
                cred = credentials.Certificate(self.credentials)
                self._firebase_app = initialize_app(cred, name=FIREBASE_APP_NAME)
                logger.info("Initialized Firebase app")
        return self._firebase_app

    def _create_fcm_message(self, token: str, content: dict) -> messaging.Message:
        return messaging.Message(
            notification=messaging.Notification(title=content['title'], body=content['body']),
            data=content['data'],
            token=token,
            android=messaging.AndroidConfig(priority='high'),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound='default', badge=1)),
            ),
        )

    def _get_tokens(self, user_id) -> List[str]:
        return list(
            DeviceToken.objects.filter(user_id=user_id, is_active=True).values_list('device_token', flat=True)
        )

    def _deactivate_token(self, token: str):
        DeviceToken.objects.filter(device_token=token).update(is_active=False)

    def _send_message(self, message):
        return messaging.send(message, app=self._get_firebase_app())

    async def send(self, delivery) -> bool:
        try:
            tokens = await database_sync_to_async(self._get_tokens)(delivery.user_id)
            if not tokens:
                logger.warning(f"No active device tokens for user {delivery.user_id}; delivery {delivery.id} not sent")
                return False

            content = self._render_content(delivery)
            success_count = 0
            for token in tokens:
                try:
                    response = await sync_to_async(self._send_message)(self._create_fcm_message(token, content))
                    success_count += 1
                    logger.debug(f"Push notification sent: {response}")
                except messaging.UnregisteredError:
                    logger.warning(f"FCM token unregistered for user {delivery.user_id}; deactivating it")
                    await database_sync_to_async(self._deactivate_token)(token)
                except Exception as e:
                    logger.error(f"Push send error for user {delivery.user_id}: {str(e)}")

            logger.info(f"Push delivery {delivery.id}: {success_count}/{len(tokens)} devices accepted")
            return success_count > 0

        except Exception as e:
            logger.error(f"Push send error for delivery {delivery.id}: {str(e)}")
            return False
