"""
In-process delivery queue.

A FIFO of delivery ids drained on a fixed tick. Each tick takes up to one
batch, sends every job in it concurrently and waits for the whole batch to
settle before the next tick. Producers are request threads (``enqueue``)
and the single consumer is the tick task on the ASGI event loop, or
``drain()`` inside a Celery worker.
"""
from channels.db import database_sync_to_async
from collections import deque
from django.conf import settings
from notifications import ledger
from notifications.gateway import gateway
from notifications.models import DeliveryStatus
from notifications.orchestrator.dispatcher import get_handler
from notifications.utils.exceptions import DeliveryNotFound
import asyncio
import logging

logger = logging.getLogger('notifications.queue')

DELIVERED = 'delivered'
FAILED = 'failed'
SKIPPED = 'skipped'
ERRORED = 'errored'


class DeliveryQueue:
    def __init__(self, tick_seconds=None, batch_size=None):
        self._tick_seconds = tick_seconds
        self._batch_size = batch_size
        self._pending = deque()
        self._processing = False
        self._task = None

    @property
    def tick_seconds(self):
        if self._tick_seconds is not None:
            return self._tick_seconds
        return settings.NOTIFICATION_QUEUE.get('TICK_SECONDS', 1.0)

    @property
    def batch_size(self):
        if self._batch_size is not None:
            return self._batch_size
        return settings.NOTIFICATION_QUEUE.get('BATCH_SIZE', 10)

    @property
    def is_processing(self):
        return self._processing

    @property
    def is_running(self):
        return self._task is not None and not self._task.done()

    def pending_count(self):
        return len(self._pending)

    def enqueue(self, delivery_id):
        self._pending.append(str(delivery_id))

    def enqueue_many(self, delivery_ids):
        count = 0
        for delivery_id in delivery_ids:
            self.enqueue(delivery_id)
            count += 1
        logger.debug(f"Enqueued {count} deliveries ({self.pending_count()} pending)")
        return count

    def clear(self):
        self._pending.clear()

    def _take_batch(self):
        batch = []
        while len(batch) < self.batch_size:
            try:
                batch.append(self._pending.popleft())
            except IndexError:
                break
        return batch

    async def _process_delivery(self, delivery_id):
        try:
            delivery = await database_sync_to_async(ledger.get)(delivery_id)
        except DeliveryNotFound:
            logger.warning(f"Queued delivery {delivery_id} no longer exists")
            return SKIPPED

        if delivery.status != DeliveryStatus.PENDING.value:
            return SKIPPED
        if not delivery.notification.is_active:
            await database_sync_to_async(ledger.mark_failed)(delivery.id, 'Notification deactivated')
            return FAILED

        try:
            handler = get_handler(delivery.channel)
            success = await handler.send(delivery)
        except Exception as e:
            logger.error(f"{delivery.channel} sender raised for delivery {delivery.id}: {str(e)}")
            reason = f"{e.__class__.__name__}: {str(e)}" if str(e) else e.__class__.__name__
            await database_sync_to_async(ledger.mark_failed)(delivery.id, reason)
            return FAILED

        if success:
            await database_sync_to_async(ledger.mark_delivered)(delivery.id)
            return DELIVERED

        await database_sync_to_async(ledger.mark_failed)(delivery.id, f"{delivery.channel} transport reported failure")
        return FAILED

    async def process_batch(self):
        """
        Process one batch. Returns per-outcome counts, or None when another
        batch is still settling.
        """
        if self._processing:
            return None
        self._processing = True
        try:
            batch = self._take_batch()
            if not batch:
                return {}
            results = await asyncio.gather(
                *(self._process_delivery(delivery_id) for delivery_id in batch),
                return_exceptions=True,
            )
        finally:
            self._processing = False

        counts = {}
        for delivery_id, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.error(f"Delivery {delivery_id} could not be processed: {str(result)}")
                result = ERRORED
            counts[result] = counts.get(result, 0) + 1
        logger.info(f"Processed batch of {len(batch)} deliveries: {counts}")
        return counts

    async def drain(self):
        """Process batches until the FIFO is empty. Returns total counts."""
        totals = {}
        while self._pending:
            counts = await self.process_batch()
            if counts is None:
                await asyncio.sleep(self.tick_seconds)
                continue
            for key, value in counts.items():
                totals[key] = totals.get(key, 0) + value
        return totals

    async def _run(self):
        logger.info(f"Delivery queue started (tick={self.tick_seconds}s, batch={self.batch_size})")
        while True:
            try:
                await self.process_batch()
            except Exception as e:
                logger.error(f"Delivery queue tick failed: {str(e)}")
            await asyncio.sleep(self.tick_seconds)

    def start(self):
        """Start the tick task on the running event loop; no-op if already running."""
        loop = asyncio.get_running_loop()
        if self.is_running and self._task.get_loop() is loop:
            return self._task
        self._task = loop.create_task(self._run())
        return self._task

    async def stop(self):
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Delivery queue stopped")

    def stats(self):
        return {
            'pending_count': self.pending_count(),
            'is_processing_batch': self._processing,
            'connected_user_count': gateway.connected_user_count(),
        }


delivery_queue = DeliveryQueue()
