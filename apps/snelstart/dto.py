from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

INVOICED_STATUS = "Factuur"


@dataclass
class SalesOrderLine:
    product_ref: str
    quantity: Decimal
    unit_price: Decimal

    def to_payload(self) -> Dict[str, Any]:
        return {
            "artikel": {"id": self.product_ref},
            "aantal": float(self.quantity),
            "stuksprijs": float(self.unit_price),
        }


@dataclass
class SalesOrderRequest:
    customer_ref: str
    order_date: date
    lines: List[SalesOrderLine] = field(default_factory=list)
    memo: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.order_date, datetime):
            self.order_date = self.order_date.date()

    def to_payload(self) -> Dict[str, Any]:
        return {
            "relatie": {"id": self.customer_ref},
            "datum": f"{self.order_date.isoformat()}T00:00:00",
            "verkooporderBtwIngaveModel": "Exclusief",
            "regels": [line.to_payload() for line in self.lines],
            "memo": self.memo,
        }


@dataclass
class RemoteSalesOrder:
    id: str
    proces_status: str = ""
    customer_ref: Optional[str] = None
    order_date: Optional[str] = None

    @property
    def is_invoiced(self) -> bool:
        return self.proces_status == INVOICED_STATUS

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "RemoteSalesOrder":
        relatie = data.get("relatie")
        customer_ref = relatie.get("id") if isinstance(relatie, dict) else relatie
        return cls(
            id=str(data.get("id") or ""),
            proces_status=str(data.get("procesStatus") or ""),
            customer_ref=str(customer_ref) if customer_ref else None,
            order_date=data.get("datum"),
        )
