from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.snelstart.client import get_gateway
from apps.snelstart.dto import RemoteSalesOrder, SalesOrderLine, SalesOrderRequest
from apps.snelstart.error_codes import classify_exception
from apps.snelstart.exceptions import SnelStartError
from events import event_bus
from events.events import (
    OrderDeleted,
    OrderRetried,
    OrderSyncExhausted,
    OrderSyncFailed,
    OrderSynced,
    OrderUpdated,
)

from .exceptions import InvoicedOrderConflict, OrderAlreadySynced, OrderNotFound, OrderValidationError
from .models import CENT, LocalOrder
from .queue import CeleryOrderSyncQueue, OrderSyncQueue, backoff_delay
from .serializers import CreateOrderSerializer, UpdateOrderSerializer

logger = logging.getLogger(__name__)


def _optional_str(value) -> Optional[str]:
    return None if value is None else str(value)


def normalise_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert validated item dicts into the JSON stored on the order."""
    lines = []
    for item in items:
        unit_price = item["unit_price"]
        quantity = item["quantity"]
        base_price = item.get("base_price")
        lines.append(
            {
                "product_id": item["product_id"],
                "product_name": item.get("product_name", ""),
                "sku": item.get("sku", ""),
                "quantity": str(quantity),
                "unit_price": str(unit_price),
                "base_price": str(base_price if base_price is not None else unit_price),
                "total_price": str((unit_price * quantity).quantize(CENT, rounding=ROUND_HALF_UP)),
                "vat_percentage": _optional_str(item.get("vat_percentage")),
            }
        )
    return lines


class OrderService:
    """Captures orders locally and mirrors them into SnelStart."""

    def __init__(self, *, gateway_factory=None, queue: Optional[OrderSyncQueue] = None) -> None:
        self.gateway_factory = gateway_factory or get_gateway
        self.queue = queue or CeleryOrderSyncQueue()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_order(self, data: Dict[str, Any], user_id: Optional[str] = None) -> LocalOrder:
        order, _ = self.place_order(data, user_id=user_id)
        return order

    def place_order(self, data: Dict[str, Any], user_id: Optional[str] = None) -> Tuple[LocalOrder, bool]:
        """Create the order and try to push it once; returns ``(order, created)``.

        A repeated ``idempotency_key`` returns the stored order untouched and
        ``created=False``. Gateway failures never reach the caller: the order
        stays ``PENDING_SYNC`` and a background sync job is queued.
        """
        serializer = CreateOrderSerializer(data=data)
        if not serializer.is_valid():
            raise OrderValidationError(serializer.errors)
        payload = serializer.validated_data
        key = payload["idempotency_key"]

        existing = LocalOrder.objects.filter(idempotency_key=key).first()
        if existing:
            logger.info("[ORDER] Idempotent replay for key %s -> order %s", key, existing.id)
            return existing, False

        items = normalise_items(payload["items"])
        try:
            with transaction.atomic():
                order = LocalOrder.objects.create(
                    idempotency_key=key,
                    customer_id=payload["customer_id"],
                    items=items,
                    status=LocalOrder.STATUS_PENDING_SYNC,
                )
        except (IntegrityError, ValidationError) as exc:
            existing = LocalOrder.objects.filter(idempotency_key=key).first()
            if existing is None:
                if isinstance(exc, ValidationError):
                    raise OrderValidationError(exc.message_dict) from exc
                raise
            logger.info("[ORDER] Lost idempotency race for key %s, returning order %s", key, existing.id)
            return existing, False

        logger.info("[ORDER] Created order %s for customer %s (total=%s)", order.id, order.customer_id, order.total)

        try:
            remote = self._push(order)
        except Exception as exc:
            self._handle_initial_failure(order, exc, user_id)
        else:
            self._handle_success(order, remote, user_id)
        return order, True

    def _handle_initial_failure(self, order: LocalOrder, exc: Exception, user_id: Optional[str]) -> None:
        error_code, retryable, _ = classify_exception(exc)
        logger.warning("[ORDER-SYNC] Immediate sync of %s failed (%s): %s", order.id, error_code, exc)
        fail_fast = settings.ORDER_SYNC_FAIL_FAST_ON_PERMANENT_ERRORS and not retryable
        order.record_sync_failure(str(exc), retry_count=order.retry_count, exhausted=fail_fast)
        event_bus.publish(
            OrderSyncFailed(
                order_id=str(order.id),
                user_id=_optional_str(user_id),
                error_message=str(exc),
                error_code=error_code,
            )
        )
        if fail_fast:
            event_bus.publish(
                OrderSyncExhausted(
                    order_id=str(order.id),
                    error_message=str(exc),
                    retry_count=order.retry_count,
                )
            )
            return
        try:
            self.queue.enqueue(str(order.id), countdown=backoff_delay(1))
        except Exception:
            # The stale-order sweep picks the order up later.
            logger.exception("[ORDER-SYNC] Could not enqueue order %s for background sync", order.id)

    def _handle_success(self, order: LocalOrder, remote: RemoteSalesOrder, user_id: Optional[str]) -> None:
        order.mark_synced(remote.id)
        logger.info("[ORDER-SYNC] Order %s synced as SnelStart order %s", order.id, remote.id)
        event_bus.publish(
            OrderSynced(
                order_id=str(order.id),
                user_id=_optional_str(user_id),
                snelstart_order_id=remote.id,
            )
        )

    # ------------------------------------------------------------------
    # Background sync
    # ------------------------------------------------------------------
    def sync_order_to_snelstart(self, order_id, attempt: Optional[int] = None) -> LocalOrder:
        """Push one order; raises the gateway error after recording it on the order."""
        order = self.get_order(order_id)
        if order.status != LocalOrder.STATUS_PENDING_SYNC:
            logger.info("[ORDER-SYNC] Order %s is %s, nothing to sync", order.id, order.status)
            return order

        try:
            remote = self._push(order)
        except Exception as exc:
            retry_count = attempt if attempt is not None else order.retry_count + 1
            error_code, retryable, _ = classify_exception(exc)
            exhausted = retry_count >= settings.ORDER_SYNC_MAX_ATTEMPTS or (
                settings.ORDER_SYNC_FAIL_FAST_ON_PERMANENT_ERRORS and not retryable
            )
            order.record_sync_failure(str(exc), retry_count=retry_count, exhausted=exhausted)
            logger.warning(
                "[ORDER-SYNC] Attempt %s for order %s failed (%s): %s",
                retry_count,
                order.id,
                error_code,
                exc,
            )
            event_bus.publish(
                OrderSyncFailed(order_id=str(order.id), error_message=str(exc), error_code=error_code)
            )
            if exhausted:
                event_bus.publish(
                    OrderSyncExhausted(order_id=str(order.id), error_message=str(exc), retry_count=retry_count)
                )
            raise

        self._handle_success(order, remote, None)
        return order

    def retry_order(self, order_id, user_id: Optional[str] = None) -> LocalOrder:
        order = self.get_order(order_id)
        if order.is_terminal:
            raise OrderAlreadySynced(order.id)
        order.reset_for_retry()
        self.queue.enqueue(str(order.id))
        logger.info("[ORDER-SYNC] Manual retry queued for order %s", order.id)
        event_bus.publish(OrderRetried(order_id=str(order.id), user_id=_optional_str(user_id)))
        return order

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------
    def update_order(self, order_id, data: Dict[str, Any], user_id: Optional[str] = None) -> LocalOrder:
        order = self.get_order(order_id)
        serializer = UpdateOrderSerializer(data=data)
        if not serializer.is_valid():
            raise OrderValidationError(serializer.errors)
        payload = serializer.validated_data
        self._ensure_not_invoiced(order)

        changes: Dict[str, Any] = {}
        with transaction.atomic():
            order = LocalOrder.objects.select_for_update().get(pk=order.pk)
            if "customer_id" in payload and payload["customer_id"] != order.customer_id:
                changes["customer_id"] = {"old": order.customer_id, "new": payload["customer_id"]}
                order.customer_id = payload["customer_id"]
            if "items" in payload:
                items = normalise_items(payload["items"])
                changes["items"] = {"old": order.items, "new": items}
                order.items = items
            if changes:
                order.save(update_fields=["customer_id", "items", "subtotal", "total", "updated_at"])

        event_bus.publish(OrderUpdated(order_id=str(order.id), user_id=_optional_str(user_id), changes=changes))
        return order

    def delete_order(self, order_id, user_id: Optional[str] = None) -> None:
        order = self.get_order(order_id)
        self._ensure_not_invoiced(order)
        pk = order.pk
        order.delete()
        logger.info("[ORDER] Deleted order %s", pk)
        event_bus.publish(OrderDeleted(order_id=str(pk), user_id=_optional_str(user_id)))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_order(self, order_id) -> LocalOrder:
        try:
            order = LocalOrder.objects.filter(pk=order_id).first()
        except ValidationError:
            order = None
        if not order:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self, status: Optional[str] = None):
        if status and status not in dict(LocalOrder.STATUS_CHOICES):
            raise OrderValidationError({"status": [f"Unknown status {status!r}."]})
        return LocalOrder.objects.with_status(status)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _push(self, order: LocalOrder) -> RemoteSalesOrder:
        gateway = self.gateway_factory()
        return gateway.create_sales_order(self._build_request(order))

    def _build_request(self, order: LocalOrder) -> SalesOrderRequest:
        return SalesOrderRequest(
            customer_ref=order.customer_id,
            order_date=timezone.localtime(order.created_at).date(),
            lines=[
                SalesOrderLine(
                    product_ref=item["product_id"],
                    quantity=Decimal(str(item["quantity"])),
                    unit_price=Decimal(str(item["unit_price"])),
                )
                for item in order.items
            ],
            memo=settings.SNELSTART_ORDER_MEMO,
        )

    def _ensure_not_invoiced(self, order: LocalOrder) -> None:
        if not order.snelstart_order_id:
            return
        try:
            remote_orders = self.gateway_factory().get_orders_for_customer(order.customer_id)
        except SnelStartError as exc:
            logger.warning(
                "[ORDER] Could not check invoice status of order %s, allowing change: %s",
                order.id,
                exc,
            )
            return
        for remote in remote_orders:
            if remote.id == order.snelstart_order_id and remote.is_invoiced:
                raise InvoicedOrderConflict(order.id)
