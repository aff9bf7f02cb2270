from asgiref.sync import async_to_sync
from datetime import datetime, time
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView
from notifications import ledger
from notifications.gateway import gateway
from notifications.message_templates import MESSAGE_TEMPLATES
from notifications.models import Delivery, DeviceToken
from notifications.permissions import HasSession, IsPublisher, IsNotificationAdmin
from notifications.queue import delivery_queue
from notifications.serializers import (
    NotificationCreateSerializer, NotificationSerializer, BroadcastSerializer,
    TestNotificationSerializer, InboxDeliverySerializer, DeliverySerializer, DeviceTokenSerializer
)
from notifications.services.notification_service import notification_service
from notifications.utils.exceptions import NotificationError
import logging

logger = logging.getLogger('notifications.api')

DEFAULT_INBOX_LIMIT = 20
MAX_INBOX_LIMIT = 100


class SchoolIdRequired(NotificationError):
    """school_id is required for platform-level callers"""
    code = 'SCHOOL_ID_REQUIRED'


class InvalidQueryParameter(NotificationError):
    code = 'VALIDATION_ERROR'


def health_check(request):
    return JsonResponse({"status": "healthy", "service": "schoolhub_notifications"})


class StandardResultsSetPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


class NotificationAPIView(APIView):
    """Translates domain errors into ``{'error', 'message'}`` responses"""

    def handle_exception(self, exc):
        if isinstance(exc, NotificationError):
            logger.info(f"{self.request.method} {self.request.path} -> {exc.code}: {exc.message}")
            return Response({'error': exc.code, 'message': exc.message}, status=exc.http_status)
        return super().handle_exception(exc)

    def get_school_id(self, explicit=None):
        """The caller's school, or ``explicit`` for platform-level callers"""
        if self.request.tenant_id:
            return self.request.tenant_id
        if not explicit:
            raise SchoolIdRequired()
        return str(explicit)


def _int_param(request, name, default, minimum=0, maximum=None):
    raw = request.query_params.get(name)
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidQueryParameter(f"{name} must be an integer")
    if value < minimum:
        raise InvalidQueryParameter(f"{name} must be >= {minimum}")
    return min(value, maximum) if maximum else value


def _date_param(request, name, end_of_day=False):
    raw = request.query_params.get(name)
    if not raw:
        return None
    value = parse_datetime(raw)
    if value is None:
        day = parse_date(raw)
        if day is None:
            raise InvalidQueryParameter(f"{name} must be an ISO date or datetime")
        value = datetime.combine(day, time.max if end_of_day else time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class NotificationCreateView(NotificationAPIView):
    permission_classes = [IsPublisher]

    def post(self, request):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        school_id = self.get_school_id(data.pop('school_id'))

        notification = notification_service.create_notification(
            school_id=school_id,
            created_by=request.user_id,
            notification_type=data.pop('type'),
            **data,
        )
        return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)


class NotificationDetailView(NotificationAPIView):
    permission_classes = [IsNotificationAdmin]

    def delete(self, request, notification_id):
        school_id = request.tenant_id  # None for platform-level admins: any school
        notification = notification_service.deactivate(
            notification_id, school_id=school_id, performed_by=request.user_id
        )
        return Response({'id': str(notification.id), 'is_active': notification.is_active})


class MyNotificationsView(NotificationAPIView):
    def get(self, request):
        limit = _int_param(request, 'limit', DEFAULT_INBOX_LIMIT, minimum=1, maximum=MAX_INBOX_LIMIT)
        offset = _int_param(request, 'offset', 0)
        total, deliveries = ledger.user_inbox(request.user_id, limit=limit, offset=offset)
        return Response({
            'count': total,
            'limit': limit,
            'offset': offset,
            'unread_count': ledger.unread_count(request.user_id),
            'results': InboxDeliverySerializer(deliveries, many=True).data,
        })


class MarkReadView(NotificationAPIView):
    def put(self, request, delivery_id):
        changed = ledger.record_read(delivery_id, request.user_id)
        unread = ledger.unread_count(request.user_id)
        if changed:
            async_to_sync(gateway.send_to_user)(request.user_id, {'count': unread}, event='unread:count')
        return Response({'delivery_id': str(delivery_id), 'read': True, 'changed': changed, 'unread_count': unread})


class UnreadCountView(NotificationAPIView):
    def get(self, request):
        return Response({'count': ledger.unread_count(request.user_id)})


class StatsView(NotificationAPIView):
    permission_classes = [IsNotificationAdmin]

    def get(self, request):
        school_id = self.get_school_id(request.query_params.get('school_id'))
        start = _date_param(request, 'start_date')
        end = _date_param(request, 'end_date', end_of_day=True)
        if start and end and start > end:
            raise InvalidQueryParameter("start_date must not be after end_date")
        data = ledger.stats(school_id, start=start, end=end)
        data.update({
            'school_id': school_id,
            'start_date': start.isoformat() if start else None,
            'end_date': end.isoformat() if end else None,
        })
        return Response(data)


class QueueStatsView(NotificationAPIView):
    permission_classes = [IsNotificationAdmin]

    def get(self, request):
        return Response(delivery_queue.stats())


class TestNotificationView(NotificationAPIView):
    permission_classes = [IsPublisher]

    def post(self, request):
        serializer = TestNotificationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        notification = notification_service.send_test(
            school_id=self.get_school_id(data.get('school_id')),
            user_id=request.user_id,
            title=data.get('title'),
            message=data.get('message'),
            channels=data.get('channels'),
        )
        return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)


class BroadcastView(NotificationAPIView):
    permission_classes = [IsPublisher]

    def post(self, request):
        serializer = BroadcastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        notification = notification_service.broadcast_announcement(
            school_id=self.get_school_id(data.pop('school_id')),
            created_by=request.user_id,
            **data,
        )
        return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)


class NotificationTemplatesView(NotificationAPIView):
    permission_classes = [IsPublisher]

    def get(self, request):
        return Response({'templates': MESSAGE_TEMPLATES})


class RetryDeliveryView(NotificationAPIView):
    permission_classes = [IsNotificationAdmin]

    def post(self, request, delivery_id):
        delivery = notification_service.retry_delivery(
            delivery_id, school_id=request.tenant_id, performed_by=request.user_id
        )
        return Response(DeliverySerializer(delivery).data, status=status.HTTP_202_ACCEPTED)


class DeviceTokenListCreateView(generics.ListCreateAPIView):
    serializer_class = DeviceTokenSerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [HasSession]

    def get_queryset(self):
        return DeviceToken.objects.filter(user_id=self.request.user_id, is_active=True).order_by('-created_at')


class DeviceTokenDetailView(generics.DestroyAPIView):
    serializer_class = DeviceTokenSerializer
    permission_classes = [HasSession]

    def get_queryset(self):
        return DeviceToken.objects.filter(user_id=self.request.user_id)


class NotificationDeliveriesView(generics.ListAPIView):
    """Deliveries of one notification, filterable by status, channel and user"""
    serializer_class = DeliverySerializer
    pagination_class = StandardResultsSetPagination
    permission_classes = [IsNotificationAdmin]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'channel', 'user_id']

    def get_queryset(self):
        queryset = Delivery.objects.filter(notification_id=self.kwargs['notification_id'])
        if self.request.tenant_id:
            queryset = queryset.filter(notification__school_id=self.request.tenant_id)
        return queryset.order_by('created_at')
