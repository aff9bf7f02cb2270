"""
Delivery ledger.

Owns every Delivery row: seeding, terminal transitions, read receipts and
the queries built on them. Terminal transitions are conditional updates on
``status=PENDING`` so a second writer (the immediate in-app path racing the
queue, for instance) becomes a no-op instead of an error.
"""
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from notifications.models import Delivery, DeliveryStatus, ChannelType
from notifications.utils.exceptions import (
    DeliveryNotFound, DeliveryAccessDenied, InvalidDeliveryState, RetryLimitExceeded
)
import logging
import uuid

logger = logging.getLogger('notifications.ledger')


def _max_retries():
    return getattr(settings, 'NOTIFICATION_MAX_RETRIES', 3)


def seed(notification_id, recipients, channels):
    """Create one PENDING row per (recipient, channel). Returns the rows."""
    recipients = list(dict.fromkeys(uuid.UUID(str(user_id)) for user_id in recipients))
    channels = list(dict.fromkeys(channels))
    rows = [
        Delivery(notification_id=notification_id, user_id=user_id, channel=channel)
        for user_id in recipients
        for channel in channels
    ]
    with transaction.atomic():
        created = Delivery.objects.bulk_create(rows)
    logger.info(f"Seeded {len(created)} deliveries for notification {notification_id} "
                f"({len(recipients)} recipients x {len(channels)} channels)")
    return created


def get(delivery_id):
    try:
        return Delivery.objects.select_related('notification').get(id=delivery_id)
    except (Delivery.DoesNotExist, ValidationError, ValueError):
        raise DeliveryNotFound(f"Delivery {delivery_id} not found")


def mark_delivered(delivery_id):
    now = timezone.now()
    changed = Delivery.objects.filter(
        id=delivery_id, status=DeliveryStatus.PENDING.value
    ).update(status=DeliveryStatus.DELIVERED.value, delivered_at=now, updated_at=now)
    if not changed:
        logger.debug(f"Delivery {delivery_id} already terminal; mark_delivered skipped")
    return bool(changed)


def mark_failed(delivery_id, reason):
    changed = Delivery.objects.filter(
        id=delivery_id, status=DeliveryStatus.PENDING.value
    ).update(
        status=DeliveryStatus.FAILED.value,
        failure_reason=reason or 'Unknown failure',
        updated_at=timezone.now(),
    )
    if changed:
        logger.warning(f"Delivery {delivery_id} failed: {reason}")
    else:
        logger.debug(f"Delivery {delivery_id} already terminal; mark_failed skipped")
    return bool(changed)


def record_read(delivery_id, user_id):
    """
    Stamp ``metadata['read_at']`` on an IN_APP delivery owned by ``user_id``.

    Returns True when the stamp was written, False when the delivery had
    already been read. Raises DeliveryNotFound, DeliveryAccessDenied or
    InvalidDeliveryState (wrong channel, or not yet DELIVERED).
    """
    delivery = get(delivery_id)
    if str(delivery.user_id) != str(user_id):
        raise DeliveryAccessDenied("Delivery belongs to another user")
    if delivery.channel != ChannelType.IN_APP.value:
        raise InvalidDeliveryState("Only IN_APP deliveries can be marked as read")
    if delivery.status != DeliveryStatus.DELIVERED.value:
        raise InvalidDeliveryState(f"Delivery {delivery.id} is {delivery.status}; only DELIVERED deliveries can be read")
    if delivery.read_at:
        return False

    metadata = dict(delivery.metadata or {})
    metadata['read_at'] = timezone.now().isoformat()
    changed = Delivery.objects.filter(id=delivery.id).exclude(
        metadata__has_key='read_at'
    ).update(metadata=metadata, updated_at=timezone.now())
    if changed:
        logger.info(f"Delivery {delivery.id} read by {user_id}")
    return bool(changed)


def _inbox_queryset(user_id):
    return Delivery.objects.filter(
        user_id=user_id,
        channel=ChannelType.IN_APP.value,
        status=DeliveryStatus.DELIVERED.value,
        notification__is_active=True,
    )


def unread_count(user_id):
    return _inbox_queryset(user_id).exclude(metadata__has_key='read_at').count()


def user_inbox(user_id, limit=20, offset=0):
    """Return ``(total, deliveries)`` newest first, notification prefetched."""
    queryset = _inbox_queryset(user_id).select_related('notification').order_by('-delivered_at', '-created_at')
    total = queryset.count()
    return total, list(queryset[offset:offset + limit])


def reset_for_retry(delivery_id):
    """Flip a FAILED delivery back to PENDING and bump its retry count."""
    delivery = get(delivery_id)
    if delivery.status != DeliveryStatus.FAILED.value:
        raise InvalidDeliveryState(f"Delivery {delivery.id} is {delivery.status}; only FAILED deliveries can be retried")
    if delivery.retry_count >= _max_retries():
        raise RetryLimitExceeded(f"Delivery {delivery.id} reached the retry limit of {_max_retries()}")

    changed = Delivery.objects.filter(
        id=delivery.id,
        status=DeliveryStatus.FAILED.value,
        retry_count=delivery.retry_count,
    ).update(
        status=DeliveryStatus.PENDING.value,
        retry_count=delivery.retry_count + 1,
        failure_reason=None,
        updated_at=timezone.now(),
    )
    if not changed:
        raise InvalidDeliveryState(f"Delivery {delivery.id} changed while being reset")
    delivery.refresh_from_db()
    logger.info(f"Delivery {delivery.id} reset for retry #{delivery.retry_count}")
    return delivery


def stats(school_id, start=None, end=None):
    queryset = Delivery.objects.filter(notification__school_id=school_id)
    if start:
        queryset = queryset.filter(created_at__gte=start)
    if end:
        queryset = queryset.filter(created_at__lte=end)

    rows = queryset.values('status', 'channel').annotate(count=Count('id')).order_by('status', 'channel')
    by_status = {tag.value: 0 for tag in DeliveryStatus}
    by_channel = {tag.value: 0 for tag in ChannelType}
    breakdown = []
    for row in rows:
        by_status[row['status']] += row['count']
        by_channel[row['channel']] += row['count']
        breakdown.append({'status': row['status'], 'channel': row['channel'], 'count': row['count']})

    return {
        'total': sum(by_status.values()),
        'by_status': by_status,
        'by_channel': by_channel,
        'breakdown': breakdown,
    }
