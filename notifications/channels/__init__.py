from .base_handler import BaseHandler
from .inapp_handler import InAppHandler
from .email_handler import EmailHandler
from .sms_handler import SMSHandler
from .push_handler import PushHandler

__all__ = [
    'BaseHandler',
    'InAppHandler',
    'EmailHandler',
    'SMSHandler',
    'PushHandler',
]
