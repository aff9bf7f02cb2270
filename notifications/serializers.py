import logging
from django.utils import timezone
from rest_framework import serializers
from notifications.models import (
    Notification, Delivery, DeviceToken, DeviceType, ChannelType, NotificationType, TargetType
)

logger = logging.getLogger('notifications')

CHANNEL_CHOICES = [(tag.value, tag.name) for tag in ChannelType]


class NotificationCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    type = serializers.ChoiceField(choices=[(tag.value, tag.name) for tag in NotificationType],
                                   default=NotificationType.GENERAL.value)
    channels = serializers.ListField(child=serializers.ChoiceField(choices=CHANNEL_CHOICES), allow_empty=False)
    target_type = serializers.ChoiceField(choices=[(tag.value, tag.name) for tag in TargetType])
    target_roles = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    target_user_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    target_branch_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    target_class_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    target_section_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    filters = serializers.JSONField(required=False, allow_null=True, default=None)
    branch_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    school_id = serializers.UUIDField(required=False, allow_null=True, default=None)  # Platform-level callers only
    scheduled_at = serializers.DateTimeField(required=False, allow_null=True, default=None)
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        expires_at = attrs.get('expires_at')
        if expires_at:
            starts_at = attrs.get('scheduled_at') or timezone.now()
            if expires_at <= starts_at:
                raise serializers.ValidationError({'expires_at': 'Must be after the scheduled (or current) time.'})
        return attrs


class BroadcastSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    message = serializers.CharField()
    channels = serializers.ListField(child=serializers.ChoiceField(choices=CHANNEL_CHOICES),
                                     required=False, default=[ChannelType.IN_APP.value], allow_empty=False)
    target_type = serializers.ChoiceField(choices=[(tag.value, tag.name) for tag in TargetType],
                                          default=TargetType.ALL_USERS.value)
    target_roles = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    target_user_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    target_branch_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    target_class_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    target_section_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    school_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    expires_at = serializers.DateTimeField(required=False, allow_null=True, default=None)


class TestNotificationSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=248, required=False)  # Room for the "[TEST] " prefix
    message = serializers.CharField(required=False)
    channels = serializers.ListField(child=serializers.ChoiceField(choices=CHANNEL_CHOICES),
                                     required=False, default=[ChannelType.IN_APP.value], allow_empty=False)
    school_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class NotificationSerializer(serializers.ModelSerializer):
    delivery_count = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id', 'school_id', 'branch_id', 'title', 'message', 'type', 'channels',
            'target_type', 'target_roles', 'target_user_ids', 'target_branch_ids',
            'target_class_ids', 'target_section_ids', 'filters',
            'scheduled_at', 'expires_at', 'dispatched_at', 'is_active',
            'created_by', 'created_at', 'delivery_count',
        ]
        read_only_fields = fields

    def get_delivery_count(self, obj):
        return obj.deliveries.count()


class NotificationSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'type', 'created_at', 'expires_at']
        read_only_fields = fields


class InboxDeliverySerializer(serializers.ModelSerializer):
    notification = NotificationSummarySerializer(read_only=True)
    read_at = serializers.SerializerMethodField()
    is_read = serializers.SerializerMethodField()

    class Meta:
        model = Delivery
        fields = ['id', 'channel', 'status', 'delivered_at', 'read_at', 'is_read', 'notification']
        read_only_fields = fields

    def get_read_at(self, obj):
        return obj.read_at

    def get_is_read(self, obj):
        return obj.read_at is not None


class DeliverySerializer(serializers.ModelSerializer):
    class Meta:
        model = Delivery
        fields = [
            'id', 'notification', 'user_id', 'channel', 'status', 'delivered_at',
            'failure_reason', 'retry_count', 'metadata', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DeviceTokenSerializer(serializers.ModelSerializer):
    device_type = serializers.ChoiceField(choices=[(tag.value, tag.name) for tag in DeviceType])

    class Meta:
        model = DeviceToken
        fields = ['id', 'device_type', 'device_token', 'device_id', 'is_active', 'last_used', 'created_at']
        read_only_fields = ['id', 'is_active', 'last_used', 'created_at']
        extra_kwargs = {'device_token': {'validators': []}}  # Re-registration is an upsert

    def validate_device_token(self, value):
        """Validate FCM token format"""
        if not value or len(value) < 20:
            raise serializers.ValidationError("Invalid FCM token format")
        return value

    def create(self, validated_data):
        request = self.context['request']
        token = validated_data.pop('device_token')
        instance, created = DeviceToken.objects.update_or_create(
            device_token=token,
            defaults={
                **validated_data,
                'school_id': request.tenant_id,
                'user_id': request.user_id,
                'is_active': True,
            },
        )
        logger.info(f"Device token {'registered' if created else 'refreshed'} for user {request.user_id}")
        return instance
