from rest_framework import status


class NotificationError(Exception):
    """Base error for the notification core"""
    code = 'NOTIFICATION_ERROR'
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class TargetingConfigurationError(NotificationError):
    """Unknown or malformed targeting rule"""
    code = 'INVALID_TARGETING'
    http_status = status.HTTP_400_BAD_REQUEST


class DeliveryAccessDenied(NotificationError):
    """Delivery belongs to another user"""
    code = 'FORBIDDEN'
    http_status = status.HTTP_403_FORBIDDEN


class DeliveryNotFound(NotificationError):
    """Delivery not found"""
    code = 'DELIVERY_NOT_FOUND'
    http_status = status.HTTP_404_NOT_FOUND


class NotificationNotFound(NotificationError):
    """Notification not found"""
    code = 'NOTIFICATION_NOT_FOUND'
    http_status = status.HTTP_404_NOT_FOUND


class InvalidDeliveryState(NotificationError):
    """Delivery is not in a state that allows this operation"""
    code = 'INVALID_DELIVERY_STATE'
    http_status = status.HTTP_409_CONFLICT


class RetryLimitExceeded(NotificationError):
    """Delivery has exhausted its retries"""
    code = 'RETRY_LIMIT_EXCEEDED'
    http_status = status.HTTP_409_CONFLICT


class SessionRejected(NotificationError):
    """Session token missing, invalid, or bound to an inactive user"""
    code = 'UNAUTHORIZED'
    http_status = status.HTTP_401_UNAUTHORIZED
