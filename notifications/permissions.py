from django.conf import settings
from rest_framework.permissions import BasePermission


class HasSession(BasePermission):
    message = 'Authentication credentials were not provided.'

    def has_permission(self, request, view):
        return getattr(request, 'session_identity', None) is not None


class IsPublisher(HasSession):
    """Roles allowed to create and broadcast notifications"""
    message = 'Your role cannot publish notifications.'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.role in settings.NOTIFICATION_PUBLISHER_ROLES


class IsNotificationAdmin(HasSession):
    message = 'Your role cannot administer notifications.'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.role in settings.NOTIFICATION_ADMIN_ROLES
