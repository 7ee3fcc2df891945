from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import uuid4

from .base_event import DomainEvent


@dataclass
class OrderEvent(DomainEvent):
    event_id: str = field(default_factory=lambda: str(uuid4()))
    event_type: str = "order"
    order_id: str = ""
    user_id: Optional[str] = None

    def get_aggregate_id(self) -> str:
        return self.order_id


@dataclass
class OrderSynced(OrderEvent):
    event_type: str = "order.synced"
    snelstart_order_id: str = ""


@dataclass
class OrderSyncFailed(OrderEvent):
    event_type: str = "order.sync_failed"
    error_message: str = ""
    error_code: str = ""


@dataclass
class OrderSyncExhausted(OrderEvent):
    event_type: str = "order.sync_exhausted"
    error_message: str = ""
    retry_count: int = 0


@dataclass
class OrderRetried(OrderEvent):
    event_type: str = "order.retried"


@dataclass
class OrderUpdated(OrderEvent):
    event_type: str = "order.updated"
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OrderDeleted(OrderEvent):
    event_type: str = "order.deleted"
