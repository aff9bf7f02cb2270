from .base_handler import BaseHandler
from asgiref.sync import sync_to_async
from notifications.models import ChannelType
from twilio.rest import Client
from twilio.base.exceptions import TwilioException
import logging

logger = logging.getLogger('notifications.channels.sms')

SMS_MAX_LENGTH = 1600  # Twilio's limit for a concatenated message


class SMSHandler(BaseHandler):
    """
    SMS notification handler using Twilio API
    """
    channel = ChannelType.SMS.value

    def __init__(self, credentials: dict = None):
        super().__init__(credentials)
        self._client = None

    def _get_twilio_client(self):
        """Get or create Twilio client instance"""
        if self._client is None:
            self._client = Client(self.credentials['account_sid'], self.credentials['auth_token'])
            logger.info("Initialized Twilio client")
        return self._client

    def _render_body(self, delivery) -> str:
        content = self._render_content(delivery)
        body = f"{content['title']}: {content['body']}"
        return body[:SMS_MAX_LENGTH]

    def _create_message(self, recipient: str, body: str):
        client = self._get_twilio_client()
        return client.messages.create(
            body=body,
            from_=self.credentials['from_number'],
            to=recipient,
        )

    async def send(self, delivery) -> bool:
        """
        Send the notification as an SMS to the recipient's phone (E.164)
        """
        try:
            user = await self._get_recipient(delivery)
            if user is None or not user.phone:
                logger.warning(f"No phone number for user {delivery.user_id}; delivery {delivery.id} not sent")
                return False

            message = await sync_to_async(self._create_message)(user.phone, self._render_body(delivery))
            logger.info(f"SMS sent successfully: {message.sid} ({message.status})")
            return True

        except TwilioException as e:
            error_code = getattr(e, 'code', None)
            if error_code == 21211:
                logger.error(f"Invalid phone number for delivery {delivery.id}")
            elif error_code == 20003:
                logger.error("Twilio authentication error")
            else:
                logger.error(f"Twilio error for delivery {delivery.id}: {str(e)}")
            return False

        except Exception as e:
            logger.error(f"SMS send error for delivery {delivery.id}: {str(e)}")
            return False
