"""Dispatch of background sync jobs for orders."""

from __future__ import annotations

import logging
import random
from typing import List, Protocol, Tuple

from django.conf import settings

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after ``attempt`` failed: base × 2^(attempt-1) plus up to 1 s jitter."""
    base = settings.ORDER_SYNC_BACKOFF_SECONDS
    return base * (2 ** max(attempt - 1, 0)) + random.uniform(0, 1)


class OrderSyncQueue(Protocol):
    def enqueue(self, order_id: str, *, countdown: float = 0, attempt_offset: int = 0) -> None:
        ...


class CeleryOrderSyncQueue:
    """Sends ``sync_order`` jobs to the ``order-sync`` Celery queue."""

    def enqueue(self, order_id: str, *, countdown: float = 0, attempt_offset: int = 0) -> None:
        from .tasks import sync_order

        sync_order.apply_async(
            (str(order_id),),
            {"attempt_offset": attempt_offset},
            countdown=countdown,
            queue="order-sync",
        )
        logger.info("[ORDER-SYNC] Enqueued order %s (countdown=%.2fs)", order_id, countdown)


class InMemoryOrderSyncQueue:
    def __init__(self) -> None:
        self.jobs: List[Tuple[str, float, int]] = []

    def enqueue(self, order_id: str, *, countdown: float = 0, attempt_offset: int = 0) -> None:
        self.jobs.append((str(order_id), countdown, attempt_offset))

    @property
    def order_ids(self) -> List[str]:
        return [job[0] for job in self.jobs]
