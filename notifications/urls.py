from django.urls import path
from .views import (
    health_check, NotificationCreateView, NotificationDetailView, MyNotificationsView,
    MarkReadView, UnreadCountView, StatsView, QueueStatsView, TestNotificationView,
    BroadcastView, NotificationTemplatesView, RetryDeliveryView, NotificationDeliveriesView,
    DeviceTokenListCreateView, DeviceTokenDetailView
)

app_name = 'notifications'

urlpatterns = [
    path('health/', health_check, name='health'),

    # Publishing
    path('', NotificationCreateView.as_view(), name='notification-create'),
    path('test/', TestNotificationView.as_view(), name='notification-test'),
    path('broadcast/', BroadcastView.as_view(), name='notification-broadcast'),
    path('templates/', NotificationTemplatesView.as_view(), name='notification-templates'),
    path('<uuid:notification_id>/', NotificationDetailView.as_view(), name='notification-detail'),

    # Recipient inbox
    path('my-notifications/', MyNotificationsView.as_view(), name='my-notifications'),
    path('unread-count/', UnreadCountView.as_view(), name='unread-count'),
    path('<uuid:delivery_id>/read/', MarkReadView.as_view(), name='mark-read'),

    # Administration
    path('stats/', StatsView.as_view(), name='stats'),
    path('queue/stats/', QueueStatsView.as_view(), name='queue-stats'),
    path('<uuid:notification_id>/deliveries/', NotificationDeliveriesView.as_view(), name='notification-deliveries'),
    path('deliveries/<uuid:delivery_id>/retry/', RetryDeliveryView.as_view(), name='delivery-retry'),

    # Device tokens for push notifications
    path('devices/', DeviceTokenListCreateView.as_view(), name='device-token-list-create'),
    path('devices/<uuid:pk>/', DeviceTokenDetailView.as_view(), name='device-token-detail'),
]
