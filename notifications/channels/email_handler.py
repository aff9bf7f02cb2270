from .base_handler import BaseHandler
from asgiref.sync import sync_to_async
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.utils.html import escape, linebreaks
from notifications.models import ChannelType
import logging

logger = logging.getLogger('notifications.channels.email')


class EmailHandler(BaseHandler):
    channel = ChannelType.EMAIL.value

    def _create_html_email(self, subject: str, body_text: str) -> str:
        """Minimal HTML alternative for the plain-text body"""
        return (
            '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
            f'<title>{escape(subject)}</title></head>'
            '<body style="font-family: Segoe UI, Tahoma, Geneva, Verdana, sans-serif; color: #333;">'
            f'<h2>{escape(subject)}</h2>{linebreaks(body_text, autoescape=True)}'
            '</body></html>'
        )

    def _send_email(self, recipient: str, subject: str, body_text: str) -> int:
        connection = get_connection(fail_silently=False)
        email = EmailMultiAlternatives(
            subject=subject,
            body=body_text,
            from_email=self.credentials.get('from_email') or settings.DEFAULT_FROM_EMAIL,
            to=[recipient],
            connection=connection,
        )
        email.attach_alternative(self._create_html_email(subject, body_text), "text/html")
        return email.send(fail_silently=False)

    async def send(self, delivery) -> bool:
        try:
            user = await self._get_recipient(delivery)
            if user is None or not user.email:
                logger.warning(f"No e-mail address for user {delivery.user_id}; delivery {delivery.id} not sent")
                return False

            content = self._render_content(delivery)
            sent = await sync_to_async(self._send_email)(user.email, content['title'], content['body'])
            if sent:
                logger.info(f"Email sent successfully to {user.email} for delivery {delivery.id}")
                return True
            logger.warning(f"Email send returned 0 for {user.email}")
            return False

        except Exception as e:
            logger.error(f"Email send error for delivery {delivery.id}: {str(e)}")
            return False
