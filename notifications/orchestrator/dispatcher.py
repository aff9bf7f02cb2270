from django.conf import settings
from notifications.channels import InAppHandler, EmailHandler, SMSHandler, PushHandler
from notifications.models import ChannelType
import logging

logger = logging.getLogger('notifications.orchestrator')


class Dispatcher:
    """Maps a channel to its sender. Handlers are built once per process."""
    _handlers = None

    @classmethod
    def _build_handlers(cls):
        return {
            ChannelType.IN_APP.value: InAppHandler(),
            ChannelType.EMAIL.value: EmailHandler(),
            ChannelType.SMS.value: SMSHandler(getattr(settings, 'DEFAULT_SMS_CREDENTIALS', {})),
            ChannelType.PUSH.value: PushHandler(getattr(settings, 'DEFAULT_PUSH_CREDENTIALS', {})),
        }

    @classmethod
    def get_handler(cls, channel: str):
        if cls._handlers is None:
            cls._handlers = cls._build_handlers()
        try:
            return cls._handlers[channel]
        except KeyError:
            raise ValueError(f"Unsupported channel: {channel}")

    @classmethod
    def set_handler(cls, channel: str, handler):
        if cls._handlers is None:
            cls._handlers = cls._build_handlers()
        cls._handlers[channel] = handler
        logger.debug(f"Handler for {channel} replaced with {handler.__class__.__name__}")

    @classmethod
    def reset(cls):
        cls._handlers = None


def get_handler(channel: str):
    return Dispatcher.get_handler(channel)
