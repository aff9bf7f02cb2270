import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch
from django.test import TestCase
from django.utils import timezone
from notifications import ledger
from notifications.gateway import gateway
from notifications.models import (
    AuditLog, ChannelType, Delivery, DeliveryStatus, Notification, TargetType
)
from notifications.queue import delivery_queue
from notifications.services.notification_service import notification_service
from notifications.utils.exceptions import (
    DeliveryNotFound, NotificationError, NotificationNotFound, TargetingConfigurationError
)
from tests.factories import OTHER_SCHOOL_ID, SCHOOL_ID, create_user

IN_APP = ChannelType.IN_APP.value
EMAIL = ChannelType.EMAIL.value
SMS = ChannelType.SMS.value


class CreateNotificationTest(TestCase):

    def setUp(self):
        self.publisher = create_user(role='SCHOOL_ADMIN')
        self.teachers = [create_user(role='TEACHER') for _ in range(3)]
        self.students = [create_user(role='STUDENT') for _ in range(10)]

    def create(self, **kwargs):
        params = {
            'school_id': SCHOOL_ID,
            'created_by': self.publisher.id,
            'title': 'Staff briefing',
            'message': 'Briefing in the staff room at 08:00.',
            'channels': [IN_APP],
            'target_type': TargetType.SPECIFIC_ROLES.value,
            'target_roles': ['TEACHER'],
        }
        params.update(kwargs)
        return notification_service.create_notification(**params)

    @patch.object(gateway, 'send_to_user', new_callable=AsyncMock, return_value=False)
    def test_role_targeting_fans_out_to_teachers_only(self, mock_send):
        notification = self.create(channels=[IN_APP, EMAIL])

        deliveries = Delivery.objects.filter(notification=notification)
        self.assertEqual(deliveries.count(), 6)
        self.assertEqual({d.user_id for d in deliveries}, {t.id for t in self.teachers})
        self.assertEqual(mock_send.await_count, 3)

        statuses = {(d.channel, d.status) for d in deliveries}
        self.assertEqual(statuses, {(IN_APP, DeliveryStatus.DELIVERED.value), (EMAIL, DeliveryStatus.PENDING.value)})
        self.assertIsNotNone(notification.dispatched_at)
        self.assertEqual(delivery_queue.pending_count(), 6)

    @patch.object(gateway, 'send_to_user', new_callable=AsyncMock, return_value=True)
    def test_in_app_payload(self, mock_send):
        notification = self.create(target_type=TargetType.SPECIFIC_USERS.value,
                                   target_roles=[], target_user_ids=[self.students[0].id])

        delivery = Delivery.objects.get(notification=notification)
        user_id, payload = mock_send.await_args[0]
        self.assertEqual(str(user_id), str(self.students[0].id))
        self.assertEqual(payload['title'], 'Staff briefing')
        self.assertEqual(payload['delivery_id'], str(delivery.id))

    def test_create_is_audited(self):
        notification = self.create(channels=[EMAIL])
        log = AuditLog.objects.get(entity_id=notification.id)
        self.assertEqual(log.action, 'CREATE')
        self.assertEqual(log.details['recipients'], 3)
        self.assertEqual(str(log.performed_by), str(self.publisher.id))

    def test_empty_audience_creates_notification_without_deliveries(self):
        notification = self.create(target_type=TargetType.BRANCH_WISE.value,
                                   target_roles=[], target_branch_ids=[uuid.uuid4()])
        self.assertEqual(notification.deliveries.count(), 0)
        self.assertIsNotNone(notification.dispatched_at)

    def test_configuration_error_persists_nothing(self):
        with self.assertRaises(TargetingConfigurationError):
            self.create(target_type=TargetType.CLASS_WISE.value, target_roles=[])
        self.assertFalse(Notification.objects.exists())
        self.assertFalse(Delivery.objects.exists())
        self.assertFalse(AuditLog.objects.exists())

    def test_unknown_channel_or_type(self):
        with self.assertRaises(NotificationError):
            self.create(channels=['CARRIER_PIGEON'])
        with self.assertRaises(NotificationError):
            self.create(channels=[])
        with self.assertRaises(NotificationError):
            self.create(notification_type='GOSSIP')
        self.assertFalse(Notification.objects.exists())


class ScheduledReleaseTest(TestCase):

    def setUp(self):
        self.publisher = create_user(role='SCHOOL_ADMIN')
        self.student = create_user(role='STUDENT')
        self.scheduled_at = timezone.now() + timedelta(hours=2)
        self.notification = notification_service.create_notification(
            school_id=SCHOOL_ID,
            created_by=self.publisher.id,
            title='Fees due',
            message='Term fees are due on Friday.',
            notification_type='FEE_DUE',
            channels=[IN_APP, SMS],
            target_type=TargetType.SPECIFIC_ROLES.value,
            target_roles=['STUDENT'],
            scheduled_at=self.scheduled_at,
        )

    def test_not_dispatched_before_due(self):
        self.assertIsNone(self.notification.dispatched_at)
        self.assertEqual(notification_service.release_due_notifications(), 0)
        self.assertFalse(Delivery.objects.exclude(status=DeliveryStatus.PENDING.value).exists())
        self.assertEqual(delivery_queue.pending_count(), 0)
        self.assertEqual(ledger.unread_count(self.student.id), 0)

    def test_released_once_due(self):
        later = self.scheduled_at + timedelta(minutes=1)
        self.assertEqual(notification_service.release_due_notifications(now=later), 1)

        self.notification.refresh_from_db()
        self.assertIsNotNone(self.notification.dispatched_at)
        self.assertEqual(ledger.unread_count(self.student.id), 1)
        self.assertEqual(delivery_queue.pending_count(), 2)

        # A second release finds nothing left to dispatch
        self.assertEqual(notification_service.release_due_notifications(now=later), 0)
        self.assertEqual(notification_service.dispatch(self.notification), 0)
        self.assertEqual(delivery_queue.pending_count(), 2)

    def test_deactivated_notification_is_not_released(self):
        notification_service.deactivate(self.notification.id, school_id=SCHOOL_ID)
        later = self.scheduled_at + timedelta(minutes=1)
        self.assertEqual(notification_service.release_due_notifications(now=later), 0)
        self.assertEqual(notification_service.release_notification(self.notification.id), 0)

    def test_release_single_notification(self):
        self.assertEqual(notification_service.release_notification(self.notification.id), 2)
        with self.assertRaises(NotificationNotFound):
            notification_service.release_notification(uuid.uuid4())


class AnnouncementTest(TestCase):

    def setUp(self):
        self.publisher = create_user(role='SCHOOL_ADMIN')
        self.users = [create_user(role=role) for role in ('TEACHER', 'STUDENT', 'PARENT')]
        create_user(role='STUDENT', school_id=OTHER_SCHOOL_ID)

    @patch.object(gateway, 'broadcast_announcement', new_callable=AsyncMock)
    def test_broadcast_announcement(self, mock_broadcast):
        notification = notification_service.broadcast_announcement(
            school_id=SCHOOL_ID, created_by=self.publisher.id, title='Snow day', message='School is closed.'
        )

        self.assertEqual(notification.type, 'ANNOUNCEMENT')
        self.assertEqual(notification.target_type, TargetType.ALL_USERS.value)
        self.assertEqual(notification.deliveries.count(), 4)
        tenant_id, payload = mock_broadcast.await_args[0]
        self.assertEqual(tenant_id, str(SCHOOL_ID))
        self.assertEqual(payload['title'], 'Snow day')

    @patch.object(gateway, 'broadcast_announcement', new_callable=AsyncMock)
    def test_scheduled_announcement_is_not_broadcast_yet(self, mock_broadcast):
        notification_service.broadcast_announcement(
            school_id=SCHOOL_ID, created_by=self.publisher.id, title='Sports day', message='Next week',
            scheduled_at=timezone.now() + timedelta(days=3),
        )
        mock_broadcast.assert_not_awaited()

    @patch.object(gateway, 'broadcast_announcement', new_callable=AsyncMock)
    def test_targeted_announcement_skips_tenant_room(self, mock_broadcast):
        notification = notification_service.broadcast_announcement(
            school_id=SCHOOL_ID, created_by=self.publisher.id, title='Staff meeting', message='Friday 3pm',
            target_type=TargetType.SPECIFIC_ROLES.value, target_roles=['TEACHER'],
        )

        self.assertEqual(notification.type, 'ANNOUNCEMENT')
        (delivery,) = notification.deliveries.all()
        self.assertEqual(delivery.user_id, self.users[0].id)
        mock_broadcast.assert_not_awaited()

    def test_send_test_reaches_only_caller(self):
        notification = notification_service.send_test(school_id=SCHOOL_ID, user_id=str(self.publisher.id))
        (delivery,) = notification.deliveries.all()
        self.assertEqual(delivery.user_id, self.publisher.id)
        self.assertEqual(delivery.status, DeliveryStatus.DELIVERED.value)
        self.assertEqual(notification.title, '[TEST] Test notification')
        self.assertEqual(notification.type, 'ANNOUNCEMENT')


class RetryAndDeactivateTest(TestCase):

    def setUp(self):
        self.admin = create_user(role='SCHOOL_ADMIN')
        self.student = create_user(role='STUDENT')
        self.notification = notification_service.create_notification(
            school_id=SCHOOL_ID, created_by=self.admin.id, title='Results', message='Results are out.',
            channels=[EMAIL], target_type=TargetType.SPECIFIC_USERS.value, target_user_ids=[self.student.id],
        )
        self.delivery = self.notification.deliveries.get()
        delivery_queue.clear()

    def test_retry_resets_and_requeues(self):
        ledger.mark_failed(self.delivery.id, 'SMTPException: relay refused')

        delivery = notification_service.retry_delivery(self.delivery.id, school_id=SCHOOL_ID,
                                                       performed_by=self.admin.id)

        self.assertEqual(delivery.status, DeliveryStatus.PENDING.value)
        self.assertEqual(delivery.retry_count, 1)
        self.assertEqual(delivery_queue.pending_count(), 1)
        self.assertTrue(AuditLog.objects.filter(entity_id=self.delivery.id, action='RETRY').exists())

    def test_retry_from_other_school(self):
        ledger.mark_failed(self.delivery.id, 'SMTPException: relay refused')
        with self.assertRaises(DeliveryNotFound):
            notification_service.retry_delivery(self.delivery.id, school_id=OTHER_SCHOOL_ID)
        self.assertEqual(delivery_queue.pending_count(), 0)

    def test_deactivate_is_idempotent(self):
        notification_service.deactivate(self.notification.id, performed_by=self.admin.id)
        notification_service.deactivate(self.notification.id, performed_by=self.admin.id)

        self.assertFalse(Notification.objects.get(id=self.notification.id).is_active)
        self.assertEqual(AuditLog.objects.filter(action='DEACTIVATE').count(), 1)

    def test_deactivate_in_other_school_is_not_found(self):
        with self.assertRaises(NotificationNotFound):
            notification_service.deactivate(self.notification.id, school_id=OTHER_SCHOOL_ID)
