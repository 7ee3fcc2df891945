import logging
from uuid import uuid4

from celery import shared_task
from django.conf import settings
from django.core.cache import cache

from .exceptions import OrderNotFound
from .models import LocalOrder
from .queue import CeleryOrderSyncQueue, backoff_delay
from .services import OrderService

logger = logging.getLogger(__name__)

SYNC_LOCK_KEY = "orders:sync-lock:{}"


def _lock_timeout() -> int:
    # Outlives a full gateway call including its internal retries.
    return settings.SNELSTART_TIMEOUT_S * 4 + 30


@shared_task(bind=True, acks_late=True, max_retries=None)
def sync_order(self, order_id: str, attempt_offset: int = 0) -> str:
    attempt = attempt_offset + self.request.retries + 1
    lock_key = SYNC_LOCK_KEY.format(order_id)
    token = self.request.id or uuid4().hex
    if not cache.add(lock_key, token, timeout=_lock_timeout()):
        logger.info("[ORDER-SYNC] Order %s is already being synced, dropping duplicate job", order_id)
        return order_id

    should_retry = False
    try:
        OrderService().sync_order_to_snelstart(order_id, attempt=attempt)
    except OrderNotFound:
        logger.warning("[ORDER-SYNC] Order %s no longer exists", order_id)
    except Exception as exc:
        order = LocalOrder.objects.filter(pk=order_id).first()
        should_retry = (
            order is not None
            and order.status == LocalOrder.STATUS_PENDING_SYNC
            and attempt < settings.ORDER_SYNC_MAX_ATTEMPTS
        )
        if not should_retry:
            logger.error("[ORDER-SYNC] Giving up on order %s after attempt %s: %s", order_id, attempt, exc)
    finally:
        # The lock may have expired and been taken by another worker.
        if cache.get(lock_key) == token:
            cache.delete(lock_key)

    if should_retry:
        countdown = backoff_delay(attempt)
        logger.info("[ORDER-SYNC] Retrying order %s in %.2fs (attempt %s)", order_id, countdown, attempt + 1)
        raise self.retry(countdown=countdown)
    return order_id


@shared_task
def sync_pending_orders() -> int:
    """Re-enqueue PENDING_SYNC orders whose sync job appears to have been lost."""
    queue = CeleryOrderSyncQueue()
    stale = LocalOrder.objects.stale_pending(settings.ORDER_SYNC_STALE_AFTER_SECONDS)
    count = 0
    for order_id, retry_count in stale.values_list("id", "retry_count"):
        queue.enqueue(str(order_id), attempt_offset=retry_count)
        count += 1
    if count:
        logger.info("[ORDER-SYNC] Re-enqueued %s stale pending orders", count)
    return count
