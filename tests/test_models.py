import uuid
from datetime import timedelta
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone
from directory.models import DirectoryUser, UserStatus
from notifications.models import (
    Notification, Delivery, DeviceToken, AuditLog, ChannelType, DeliveryStatus, DeviceType
)
from tests.factories import SCHOOL_ID, create_notification, create_user


class NotificationModelTest(TestCase):

    def test_defaults(self):
        notification = create_notification()
        self.assertTrue(notification.is_active)
        self.assertIsNone(notification.dispatched_at)
        self.assertEqual(notification.type, 'GENERAL')
        self.assertEqual(notification.target_roles, [])

    def test_is_due(self):
        now = timezone.now()
        self.assertTrue(create_notification().is_due(now))
        self.assertTrue(create_notification(scheduled_at=now - timedelta(minutes=1)).is_due(now))
        self.assertFalse(create_notification(scheduled_at=now + timedelta(hours=1)).is_due(now))

    def test_active_manager_hides_deactivated(self):
        kept = create_notification()
        create_notification(is_active=False)
        self.assertEqual(list(Notification.active.all()), [kept])
        self.assertEqual(Notification.objects.count(), 2)

    def test_summary_is_json_friendly(self):
        notification = create_notification(title='Holiday', type='HOLIDAY')
        summary = notification.summary()
        self.assertEqual(summary['id'], str(notification.id))
        self.assertEqual(summary['title'], 'Holiday')
        self.assertEqual(summary['type'], 'HOLIDAY')
        self.assertIsNone(summary['expires_at'])


class DeliveryModelTest(TestCase):

    def setUp(self):
        self.notification = create_notification()
        self.user_id = uuid.uuid4()

    def test_unique_per_user_and_channel(self):
        Delivery.objects.create(notification=self.notification, user_id=self.user_id, channel=ChannelType.IN_APP.value)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Delivery.objects.create(notification=self.notification, user_id=self.user_id,
                                        channel=ChannelType.IN_APP.value)
        # Same user on another channel is a separate row
        Delivery.objects.create(notification=self.notification, user_id=self.user_id, channel=ChannelType.EMAIL.value)
        self.assertEqual(self.notification.deliveries.count(), 2)

    def test_defaults_and_read_at(self):
        delivery = Delivery.objects.create(notification=self.notification, user_id=self.user_id,
                                           channel=ChannelType.IN_APP.value)
        self.assertEqual(delivery.status, DeliveryStatus.PENDING.value)
        self.assertTrue(delivery.is_pending)
        self.assertEqual(delivery.retry_count, 0)
        self.assertIsNone(delivery.read_at)

        delivery.metadata = {'read_at': '2024-01-01T12:00:00+00:00'}
        self.assertEqual(delivery.read_at, '2024-01-01T12:00:00+00:00')


class DeviceTokenAndAuditTest(TestCase):

    def test_device_token_str(self):
        token = DeviceToken.objects.create(
            school_id=SCHOOL_ID,
            user_id=uuid.uuid4(),
            device_type=DeviceType.ANDROID.value,
            device_token='fcm_test_token_1234567890abcdef',
        )
        self.assertTrue(token.is_active)
        self.assertIn('android', str(token))

    def test_audit_log_ordering(self):
        first = AuditLog.objects.create(school_id=SCHOOL_ID, entity_type='notification',
                                        entity_id=uuid.uuid4(), action='CREATE')
        second = AuditLog.objects.create(school_id=SCHOOL_ID, entity_type='notification',
                                         entity_id=uuid.uuid4(), action='DEACTIVATE')
        self.assertEqual(set(AuditLog.objects.all()), {first, second})


class DirectoryUserModelTest(TestCase):

    def test_active_manager(self):
        active = create_user(role='TEACHER')
        create_user(role='TEACHER', status=UserStatus.SUSPENDED.value)
        self.assertEqual(list(DirectoryUser.active.all()), [active])
        self.assertTrue(active.is_active)
        self.assertEqual(active.full_name, 'Test User')
