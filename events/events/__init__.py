from .base_event import DomainEvent
from .order_events import (
    OrderDeleted,
    OrderEvent,
    OrderRetried,
    OrderSyncExhausted,
    OrderSyncFailed,
    OrderSynced,
    OrderUpdated,
)
from .pricing_events import PriceRuleChanged

__all__ = [
    "DomainEvent",
    "OrderEvent",
    "OrderSynced",
    "OrderSyncFailed",
    "OrderSyncExhausted",
    "OrderRetried",
    "OrderUpdated",
    "OrderDeleted",
    "PriceRuleChanged",
]
