"""
Notification orchestration.

``create_notification`` persists the notification, resolves its audience
and seeds the ledger in one transaction, then dispatches right away unless
the notification is scheduled for later. Dispatching pushes IN_APP rows to
the realtime gateway, marks them delivered and enqueues every seeded row on
the delivery queue.
"""
from asgiref.sync import async_to_sync
from django.db import transaction
from django.utils import timezone
from notifications import audience, ledger
from notifications.gateway import gateway
from notifications.models import (
    Notification, NotificationType, TargetType, ChannelType, DeliveryStatus
)
from notifications.orchestrator.logger import log_event
from notifications.queue import delivery_queue
from notifications.utils.exceptions import (
    NotificationError, NotificationNotFound, DeliveryNotFound
)
from django.core.exceptions import ValidationError
import logging

logger = logging.getLogger('notifications.service')

CHANNEL_VALUES = [tag.value for tag in ChannelType]
TYPE_VALUES = [tag.value for tag in NotificationType]


class NotificationService:

    def create_notification(self, *, school_id, created_by, title, message,
                            channels, target_type, notification_type=NotificationType.GENERAL.value,
                            target_roles=None, target_user_ids=None, target_branch_ids=None,
                            target_class_ids=None, target_section_ids=None,
                            branch_id=None, filters=None, scheduled_at=None, expires_at=None):
        channels = list(dict.fromkeys(channels or []))
        if not channels:
            raise NotificationError("At least one channel is required")
        unknown = [c for c in channels if c not in CHANNEL_VALUES]
        if unknown:
            raise NotificationError(f"Unsupported channels: {', '.join(map(str, unknown))}")
        if notification_type not in TYPE_VALUES:
            raise NotificationError(f"Unsupported notification type: {notification_type}")

        targeting = {
            'target_roles': list(target_roles or []),
            'target_user_ids': [str(v) for v in target_user_ids or []],
            'target_branch_ids': [str(v) for v in target_branch_ids or []],
            'target_class_ids': [str(v) for v in target_class_ids or []],
            'target_section_ids': [str(v) for v in target_section_ids or []],
        }
        audience.validate_targeting(
            target_type,
            roles=targeting['target_roles'],
            user_ids=targeting['target_user_ids'],
            branch_ids=targeting['target_branch_ids'],
            class_ids=targeting['target_class_ids'],
            section_ids=targeting['target_section_ids'],
        )

        with transaction.atomic():
            notification = Notification.objects.create(
                school_id=school_id,
                branch_id=branch_id,
                title=title,
                message=message,
                type=notification_type,
                channels=channels,
                target_type=target_type,
                filters=filters,
                scheduled_at=scheduled_at,
                expires_at=expires_at,
                created_by=created_by,
                **targeting,
            )
            recipients = audience.resolve(notification)
            deliveries = ledger.seed(notification.id, recipients, channels)
            log_event('CREATE', 'notification', notification.id, school_id, {
                'title': title,
                'type': notification_type,
                'channels': channels,
                'target_type': target_type,
                'recipients': len(recipients),
                'scheduled_at': scheduled_at.isoformat() if scheduled_at else None,
            }, performed_by=created_by)

        logger.info(f"Notification {notification.id} created for school {school_id}: "
                    f"{len(recipients)} recipients, {len(deliveries)} deliveries")

        if notification.is_due():
            self.dispatch(notification, deliveries)
        else:
            logger.info(f"Notification {notification.id} scheduled for {notification.scheduled_at.isoformat()}")
        return notification

    def dispatch(self, notification, deliveries=None):
        """
        Push IN_APP rows live and enqueue every pending row. Runs at most
        once per notification; returns the number of rows enqueued.
        """
        now = timezone.now()
        claimed = Notification.objects.filter(
            id=notification.id, dispatched_at__isnull=True
        ).update(dispatched_at=now)
        if not claimed:
            logger.debug(f"Notification {notification.id} already dispatched")
            return 0
        notification.dispatched_at = now

        if deliveries is None:
            deliveries = list(notification.deliveries.filter(status=DeliveryStatus.PENDING.value))
        in_app = [d for d in deliveries if d.channel == ChannelType.IN_APP.value]
        if in_app:
            async_to_sync(self._push_in_app)(notification, in_app)
            for delivery in in_app:
                ledger.mark_delivered(delivery.id)

        # IN_APP rows are enqueued too; the queue skips them once delivered
        enqueued = delivery_queue.enqueue_many(d.id for d in deliveries)
        logger.info(f"Notification {notification.id} dispatched: {len(in_app)} in-app pushes, {enqueued} enqueued")
        return enqueued

    async def _push_in_app(self, notification, deliveries):
        summary = notification.summary()
        for delivery in deliveries:
            await gateway.send_to_user(delivery.user_id, {**summary, 'delivery_id': str(delivery.id)})

    def release_due_notifications(self, now=None):
        """Dispatch active scheduled notifications whose time has come."""
        now = now or timezone.now()
        due = Notification.active.filter(
            dispatched_at__isnull=True,
            scheduled_at__isnull=False,
            scheduled_at__lte=now,
        ).order_by('scheduled_at')
        released = 0
        for notification in due:
            self.dispatch(notification)
            if notification.dispatched_at:
                released += 1
        if released:
            logger.info(f"Released {released} scheduled notifications")
        return released

    def release_notification(self, notification_id):
        notification = self.get_notification(notification_id)
        if not notification.is_active:
            logger.info(f"Notification {notification_id} is inactive; not released")
            return 0
        return self.dispatch(notification)

    def get_notification(self, notification_id, school_id=None):
        queryset = Notification.objects.all()
        if school_id is not None:
            queryset = queryset.filter(school_id=school_id)
        try:
            return queryset.get(id=notification_id)
        except (Notification.DoesNotExist, ValidationError, ValueError):
            raise NotificationNotFound(f"Notification {notification_id} not found")

    def retry_delivery(self, delivery_id, school_id=None, performed_by=None):
        delivery = ledger.get(delivery_id)
        if school_id is not None and str(delivery.notification.school_id) != str(school_id):
            raise DeliveryNotFound(f"Delivery {delivery_id} not found")

        delivery = ledger.reset_for_retry(delivery.id)
        delivery_queue.enqueue(delivery.id)
        log_event('RETRY', 'delivery', delivery.id, delivery.notification.school_id, {
            'notification_id': str(delivery.notification_id),
            'channel': delivery.channel,
            'retry_count': delivery.retry_count,
        }, performed_by=performed_by)
        return delivery

    def deactivate(self, notification_id, school_id=None, performed_by=None):
        notification = self.get_notification(notification_id, school_id=school_id)
        if notification.is_active:
            notification.is_active = False
            notification.save(update_fields=['is_active'])
            log_event('DEACTIVATE', 'notification', notification.id, notification.school_id,
                      {'title': notification.title}, performed_by=performed_by)
            logger.info(f"Notification {notification.id} deactivated")
        return notification

    def broadcast_announcement(self, *, school_id, created_by, title, message,
                               channels=None, target_type=None, **kwargs):
        """
        ANNOUNCEMENT to the targeted audience (every active user of the
        school by default). A school-wide announcement also goes out as an
        ``announcement`` event to the tenant room.
        """
        target_type = target_type or TargetType.ALL_USERS.value
        notification = self.create_notification(
            school_id=school_id,
            created_by=created_by,
            title=title,
            message=message,
            channels=channels or [ChannelType.IN_APP.value],
            target_type=target_type,
            notification_type=NotificationType.ANNOUNCEMENT.value,
            **kwargs,
        )
        if notification.dispatched_at and target_type == TargetType.ALL_USERS.value:
            async_to_sync(gateway.broadcast_announcement)(str(school_id), notification.summary())
        return notification

    def send_test(self, *, school_id, user_id, title=None, message=None, channels=None):
        """ANNOUNCEMENT addressed to the caller only, title prefixed with ``[TEST]``"""
        return self.create_notification(
            school_id=school_id,
            created_by=user_id,
            title=f"[TEST] {title or 'Test notification'}",
            message=message or 'This is a test notification from SchoolHub.',
            notification_type=NotificationType.ANNOUNCEMENT.value,
            channels=channels or [ChannelType.IN_APP.value],
            target_type=TargetType.SPECIFIC_USERS.value,
            target_user_ids=[user_id],
        )


notification_service = NotificationService()
