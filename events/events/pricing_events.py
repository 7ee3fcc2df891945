from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import uuid4

from .base_event import DomainEvent


@dataclass
class PriceRuleChanged(DomainEvent):
    event_id: str = field(default_factory=lambda: str(uuid4()))
    event_type: str = "pricing.rule_changed"
    rule_id: str = ""
    action: str = ""
    user_id: Optional[str] = None
    changes: Dict[str, Any] = field(default_factory=dict)

    def get_aggregate_id(self) -> str:
        return self.rule_id
