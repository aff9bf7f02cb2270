from django.db import models
from django.utils import timezone
from enum import Enum
import uuid
from django.db.models import JSONField
import logging

logger = logging.getLogger('notifications')


class ChannelType(Enum):
    IN_APP = 'IN_APP'
    EMAIL = 'EMAIL'
    SMS = 'SMS'
    PUSH = 'PUSH'


class DeliveryStatus(Enum):
    PENDING = 'PENDING'
    DELIVERED = 'DELIVERED'
    FAILED = 'FAILED'


class NotificationType(Enum):
    ANNOUNCEMENT = 'ANNOUNCEMENT'
    REMINDER = 'REMINDER'
    FEE_DUE = 'FEE_DUE'
    ATTENDANCE_ALERT = 'ATTENDANCE_ALERT'
    EXAM_RESULT = 'EXAM_RESULT'
    EVENT = 'EVENT'
    HOLIDAY = 'HOLIDAY'
    GENERAL = 'GENERAL'


class TargetType(Enum):
    ALL_USERS = 'ALL_USERS'
    SPECIFIC_ROLES = 'SPECIFIC_ROLES'
    SPECIFIC_USERS = 'SPECIFIC_USERS'
    BRANCH_WISE = 'BRANCH_WISE'
    CLASS_WISE = 'CLASS_WISE'
    SECTION_WISE = 'SECTION_WISE'


class ActiveNotificationManager(models.Manager):
    def get_queryset(self):
        return super().get_queryset().filter(is_active=True)


class Notification(models.Model):
    """A broadcast intent. Immutable once created apart from deactivation."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_id = models.UUIDField(db_index=True)
    branch_id = models.UUIDField(null=True, blank=True)
    title = models.CharField(max_length=255)
    message = models.TextField()
    type = models.CharField(max_length=20, choices=[(tag.value, tag.name) for tag in NotificationType], default=NotificationType.GENERAL.value)
    channels = JSONField(default=list)  # e.g. ['IN_APP', 'EMAIL']
    target_type = models.CharField(max_length=20, choices=[(tag.value, tag.name) for tag in TargetType])
    target_roles = JSONField(default=list)
    target_user_ids = JSONField(default=list)
    target_branch_ids = JSONField(default=list)
    target_class_ids = JSONField(default=list)
    target_section_ids = JSONField(default=list)
    filters = JSONField(null=True, blank=True)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.UUIDField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = models.Manager()
    active = ActiveNotificationManager()

    class Meta:
        indexes = [
            models.Index(fields=['school_id', 'created_at'], name='notif_school_created_idx'),
            models.Index(fields=['scheduled_at', 'dispatched_at'], name='notif_schedule_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.type}: {self.title}"

    def is_due(self, now=None):
        now = now or timezone.now()
        return self.scheduled_at is None or self.scheduled_at <= now

    def summary(self):
        return {
            'id': str(self.id),
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


class Delivery(models.Model):
    """One row per (notification, recipient, channel); the unit of delivery state"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    notification = models.ForeignKey(Notification, on_delete=models.PROTECT, related_name='deliveries')
    user_id = models.UUIDField(db_index=True)
    channel = models.CharField(max_length=10, choices=[(tag.value, tag.name) for tag in ChannelType])
    status = models.CharField(max_length=10, choices=[(tag.value, tag.name) for tag in DeliveryStatus], default=DeliveryStatus.PENDING.value)
    delivered_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    metadata = JSONField(default=dict, blank=True)  # {'read_at': '<iso timestamp>'}
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['notification', 'user_id', 'channel'], name='unique_delivery_per_user_channel'),
        ]
        indexes = [
            models.Index(fields=['user_id', 'channel', 'status'], name='delivery_inbox_idx'),
            models.Index(fields=['notification', 'status'], name='delivery_notif_status_idx'),
        ]

    def __str__(self):
        return f"{self.channel} to {self.user_id} [{self.status}]"

    @property
    def is_pending(self):
        return self.status == DeliveryStatus.PENDING.value

    @property
    def read_at(self):
        return (self.metadata or {}).get('read_at')


class DeviceType(Enum):
    ANDROID = 'android'
    IOS = 'ios'
    WEB = 'web'


class DeviceToken(models.Model):
    """Store device tokens for push notifications"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_id = models.UUIDField(db_index=True, null=True, blank=True)
    user_id = models.UUIDField(db_index=True)
    device_type = models.CharField(max_length=10, choices=[(tag.value, tag.name) for tag in DeviceType])
    device_token = models.CharField(max_length=500, unique=True)  # FCM token
    device_id = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    last_used = models.DateTimeField(auto_now=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['user_id', 'is_active'], name='device_user_active_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} - {self.device_type} - {self.device_token[:20]}..."


class AuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school_id = models.UUIDField(db_index=True)
    entity_type = models.CharField(max_length=50)  # 'notification', 'delivery'
    entity_id = models.UUIDField()
    action = models.CharField(max_length=50)  # e.g. 'CREATE', 'DEACTIVATE', 'RETRY'
    details = JSONField(default=dict)
    performed_by = models.UUIDField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=['school_id', 'timestamp'], name='audit_school_ts_idx')]
        ordering = ['-timestamp']
