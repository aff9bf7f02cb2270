import uuid
from django.test import TestCase, override_settings
from notifications import ledger
from notifications.models import Delivery, ChannelType, DeliveryStatus
from notifications.utils.exceptions import (
    DeliveryNotFound, DeliveryAccessDenied, InvalidDeliveryState, RetryLimitExceeded
)
from tests.factories import OTHER_SCHOOL_ID, create_notification

IN_APP = ChannelType.IN_APP.value
EMAIL = ChannelType.EMAIL.value
SMS = ChannelType.SMS.value


class SeedTest(TestCase):

    def test_one_row_per_recipient_and_channel(self):
        notification = create_notification(channels=[IN_APP, EMAIL])
        recipients = [uuid.uuid4() for _ in range(5)]

        rows = ledger.seed(notification.id, recipients + recipients[:2], [IN_APP, EMAIL, EMAIL])

        self.assertEqual(len(rows), 10)
        self.assertEqual(Delivery.objects.filter(notification=notification).count(), 10)
        self.assertFalse(Delivery.objects.exclude(status=DeliveryStatus.PENDING.value).exists())
        pairs = set(Delivery.objects.values_list('user_id', 'channel'))
        self.assertEqual(pairs, {(user_id, channel) for user_id in recipients for channel in (IN_APP, EMAIL)})

    def test_same_user_as_uuid_and_string_is_one_recipient(self):
        notification = create_notification(channels=[IN_APP])
        user_id = uuid.uuid4()

        rows = ledger.seed(notification.id, [user_id, str(user_id), str(user_id).upper()], [IN_APP])

        self.assertEqual(len(rows), 1)
        self.assertEqual(Delivery.objects.get(notification=notification).user_id, user_id)

    def test_empty_audience_seeds_nothing(self):
        notification = create_notification()
        self.assertEqual(ledger.seed(notification.id, [], [IN_APP]), [])


class TransitionTest(TestCase):

    def setUp(self):
        self.notification = create_notification(channels=[IN_APP, EMAIL])
        self.user_id = uuid.uuid4()
        self.in_app, self.email = ledger.seed(self.notification.id, [self.user_id], [IN_APP, EMAIL])

    def test_mark_delivered_is_idempotent(self):
        self.assertTrue(ledger.mark_delivered(self.in_app.id))
        first = Delivery.objects.get(id=self.in_app.id)
        self.assertEqual(first.status, DeliveryStatus.DELIVERED.value)
        self.assertIsNotNone(first.delivered_at)

        self.assertFalse(ledger.mark_delivered(self.in_app.id))
        self.assertEqual(Delivery.objects.get(id=self.in_app.id).delivered_at, first.delivered_at)

    def test_terminal_state_is_sticky(self):
        self.assertTrue(ledger.mark_failed(self.email.id, 'SMTPException: relay refused'))
        self.assertFalse(ledger.mark_delivered(self.email.id))
        self.assertFalse(ledger.mark_failed(self.email.id, 'second failure'))

        email = Delivery.objects.get(id=self.email.id)
        self.assertEqual(email.status, DeliveryStatus.FAILED.value)
        self.assertEqual(email.failure_reason, 'SMTPException: relay refused')
        self.assertIsNone(email.delivered_at)

    def test_get_unknown_or_malformed_id(self):
        with self.assertRaises(DeliveryNotFound):
            ledger.get(uuid.uuid4())
        with self.assertRaises(DeliveryNotFound):
            ledger.get('not-a-uuid')


class ReadReceiptTest(TestCase):

    def setUp(self):
        self.owner = uuid.uuid4()
        notification = create_notification(channels=[IN_APP, EMAIL])
        self.in_app, self.email = ledger.seed(notification.id, [self.owner], [IN_APP, EMAIL])
        ledger.mark_delivered(self.in_app.id)
        ledger.mark_delivered(self.email.id)

    def test_unread_count_decrements_once(self):
        self.assertEqual(ledger.unread_count(self.owner), 1)

        self.assertTrue(ledger.record_read(self.in_app.id, self.owner))
        self.assertEqual(ledger.unread_count(self.owner), 0)
        self.assertIsNotNone(Delivery.objects.get(id=self.in_app.id).read_at)

        # Second read leaves the first stamp in place
        stamp = Delivery.objects.get(id=self.in_app.id).read_at
        self.assertFalse(ledger.record_read(self.in_app.id, self.owner))
        self.assertEqual(Delivery.objects.get(id=self.in_app.id).read_at, stamp)
        self.assertEqual(ledger.unread_count(self.owner), 0)

    def test_other_user_cannot_mark_read(self):
        with self.assertRaises(DeliveryAccessDenied):
            ledger.record_read(self.in_app.id, uuid.uuid4())
        self.assertIsNone(Delivery.objects.get(id=self.in_app.id).read_at)

    def test_only_in_app_can_be_read(self):
        with self.assertRaises(InvalidDeliveryState):
            ledger.record_read(self.email.id, self.owner)

    def test_pending_delivery_cannot_be_read(self):
        scheduled = create_notification()
        (row,) = ledger.seed(scheduled.id, [self.owner], [IN_APP])

        with self.assertRaises(InvalidDeliveryState):
            ledger.record_read(row.id, self.owner)
        self.assertIsNone(Delivery.objects.get(id=row.id).read_at)

        # Once dispatched it shows up as unread
        ledger.mark_delivered(row.id)
        self.assertEqual(ledger.unread_count(self.owner), 2)

    def test_inbox_holds_delivered_in_app_from_active_notifications(self):
        hidden = create_notification(is_active=False)
        (hidden_row,) = ledger.seed(hidden.id, [self.owner], [IN_APP])
        ledger.mark_delivered(hidden_row.id)
        pending = create_notification()
        ledger.seed(pending.id, [self.owner], [IN_APP])

        total, rows = ledger.user_inbox(self.owner)
        self.assertEqual(total, 1)
        self.assertEqual([row.id for row in rows], [self.in_app.id])
        self.assertEqual(ledger.unread_count(self.owner), 1)

    def test_inbox_paging(self):
        for _ in range(4):
            (row,) = ledger.seed(create_notification().id, [self.owner], [IN_APP])
            ledger.mark_delivered(row.id)

        total, rows = ledger.user_inbox(self.owner, limit=2, offset=1)
        self.assertEqual(total, 5)
        self.assertEqual(len(rows), 2)


@override_settings(NOTIFICATION_MAX_RETRIES=2)
class RetryTest(TestCase):

    def setUp(self):
        notification = create_notification(channels=[SMS])
        (self.delivery,) = ledger.seed(notification.id, [uuid.uuid4()], [SMS])

    def test_only_failed_deliveries_can_be_retried(self):
        with self.assertRaises(InvalidDeliveryState):
            ledger.reset_for_retry(self.delivery.id)

    def test_retry_is_bounded(self):
        for attempt in (1, 2):
            ledger.mark_failed(self.delivery.id, 'TwilioException: timeout')
            delivery = ledger.reset_for_retry(self.delivery.id)
            self.assertEqual(delivery.status, DeliveryStatus.PENDING.value)
            self.assertEqual(delivery.retry_count, attempt)
            self.assertIsNone(delivery.failure_reason)

        ledger.mark_failed(self.delivery.id, 'TwilioException: timeout')
        with self.assertRaises(RetryLimitExceeded):
            ledger.reset_for_retry(self.delivery.id)
        self.assertEqual(Delivery.objects.get(id=self.delivery.id).status, DeliveryStatus.FAILED.value)


class StatsTest(TestCase):

    def test_counts_by_status_and_channel(self):
        notification = create_notification(channels=[IN_APP, EMAIL])
        rows = ledger.seed(notification.id, [uuid.uuid4(), uuid.uuid4()], [IN_APP, EMAIL])
        in_app = [row for row in rows if row.channel == IN_APP]
        email = [row for row in rows if row.channel == EMAIL]
        for row in in_app:
            ledger.mark_delivered(row.id)
        ledger.mark_failed(email[0].id, 'no address')

        other = create_notification(school_id=OTHER_SCHOOL_ID)
        ledger.seed(other.id, [uuid.uuid4()], [IN_APP])

        data = ledger.stats(notification.school_id)
        self.assertEqual(data['total'], 4)
        self.assertEqual(data['by_status'], {'PENDING': 1, 'DELIVERED': 2, 'FAILED': 1})
        self.assertEqual(data['by_channel'], {'IN_APP': 2, 'EMAIL': 2, 'SMS': 0, 'PUSH': 0})
        self.assertIn({'status': 'FAILED', 'channel': 'EMAIL', 'count': 1}, data['breakdown'])

    def test_empty_school(self):
        data = ledger.stats(uuid.uuid4())
        self.assertEqual(data['total'], 0)
        self.assertEqual(data['breakdown'], [])
