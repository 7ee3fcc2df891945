import logging

from events.events import (
    OrderDeleted,
    OrderRetried,
    OrderSyncExhausted,
    OrderSyncFailed,
    OrderSynced,
    OrderUpdated,
    PriceRuleChanged,
)

from .models import AuditLog
from .services import record_audit

logger = logging.getLogger(__name__)


def handle_order_synced(event: OrderSynced):
    return record_audit(
        action="ORDER_SYNCED",
        entity_type=AuditLog.ENTITY_ORDER,
        entity_id=event.order_id,
        user_id=event.user_id,
        metadata={"snelstartOrderId": event.snelstart_order_id},
    )


def handle_order_sync_failed(event: OrderSyncFailed):
    return record_audit(
        action="ORDER_SYNC_FAILED",
        entity_type=AuditLog.ENTITY_ORDER,
        entity_id=event.order_id,
        user_id=event.user_id,
        metadata={"error": event.error_message, "errorCode": event.error_code},
    )


def handle_order_sync_exhausted(event: OrderSyncExhausted):
    logger.warning(
        "[AUDIT] Order %s gave up after %s attempts: %s",
        event.order_id,
        event.retry_count,
        event.error_message,
    )
    return record_audit(
        action="ORDER_SYNC_EXHAUSTED",
        entity_type=AuditLog.ENTITY_ORDER,
        entity_id=event.order_id,
        metadata={"error": event.error_message, "retryCount": event.retry_count},
    )


def handle_order_retried(event: OrderRetried):
    return record_audit(
        action="ORDER_RETRY",
        entity_type=AuditLog.ENTITY_ORDER,
        entity_id=event.order_id,
        user_id=event.user_id,
    )


def handle_order_updated(event: OrderUpdated):
    return record_audit(
        action="ORDER_UPDATED",
        entity_type=AuditLog.ENTITY_ORDER,
        entity_id=event.order_id,
        user_id=event.user_id,
        changes=event.changes,
    )


def handle_order_deleted(event: OrderDeleted):
    return record_audit(
        action="ORDER_DELETED",
        entity_type=AuditLog.ENTITY_ORDER,
        entity_id=event.order_id,
        user_id=event.user_id,
    )


def handle_price_rule_changed(event: PriceRuleChanged):
    return record_audit(
        action=event.action,
        entity_type=AuditLog.ENTITY_PRICE_RULE,
        entity_id=event.rule_id,
        user_id=event.user_id,
        changes=event.changes,
    )


def register_handlers():
    from events import event_bus

    event_bus.subscribe(OrderSynced.event_type, handle_order_synced)
    event_bus.subscribe(OrderSyncFailed.event_type, handle_order_sync_failed)
    event_bus.subscribe(OrderSyncExhausted.event_type, handle_order_sync_exhausted)
    event_bus.subscribe(OrderRetried.event_type, handle_order_retried)
    event_bus.subscribe(OrderUpdated.event_type, handle_order_updated)
    event_bus.subscribe(OrderDeleted.event_type, handle_order_deleted)
    event_bus.subscribe(PriceRuleChanged.event_type, handle_price_rule_changed)
