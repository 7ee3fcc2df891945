from __future__ import annotations

from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List

from django.db import models, transaction
from django.utils import timezone

from apps.core.models import TimeStampedModel

from .exceptions import InvalidOrderTransition

CENT = Decimal("0.01")


def items_total(items: List[Dict[str, Any]]) -> Decimal:
    """Sum of unit_price × quantity over the lines, rounded to cents."""
    total = sum(
        (Decimal(str(item["unit_price"])) * Decimal(str(item["quantity"])) for item in items),
        Decimal("0"),
    )
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


class LocalOrderQuerySet(models.QuerySet):
    def with_status(self, status):
        return self.filter(status=status) if status else self

    def stale_pending(self, older_than_seconds: int):
        cutoff = timezone.now() - timedelta(seconds=older_than_seconds)
        return self.filter(status=LocalOrder.STATUS_PENDING_SYNC, updated_at__lte=cutoff)


class LocalOrder(TimeStampedModel):
    """Wholesale order captured locally and mirrored into SnelStart."""

    STATUS_DRAFT = "DRAFT"
    STATUS_PENDING_SYNC = "PENDING_SYNC"
    STATUS_SYNCED = "SYNCED"
    STATUS_FAILED = "FAILED"
    STATUS_CHOICES = (
        (STATUS_DRAFT, "Draft"),
        (STATUS_PENDING_SYNC, "Pending sync"),
        (STATUS_SYNCED, "Synced"),
        (STATUS_FAILED, "Failed"),
    )

    ALLOWED_TRANSITIONS = {
        STATUS_DRAFT: {STATUS_PENDING_SYNC},
        STATUS_PENDING_SYNC: {STATUS_SYNCED, STATUS_FAILED},
        STATUS_FAILED: {STATUS_PENDING_SYNC},
        STATUS_SYNCED: set(),
    }

    idempotency_key = models.CharField(max_length=191, unique=True)
    customer_id = models.CharField(max_length=64, db_index=True)
    items = models.JSONField(default=list)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    snelstart_order_id = models.CharField(max_length=64, blank=True)
    error_message = models.TextField(blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    synced_at = models.DateTimeField(blank=True, null=True)

    objects = LocalOrderQuerySet.as_manager()

    class Meta:
        app_label = "orders"
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=("status", "updated_at"), name="idx_order_status"),
            models.Index(fields=("customer_id", "created_at"), name="idx_order_customer"),
        ]

    def __str__(self) -> str:  # pragma: no cover - debug aid
        return f"{self.idempotency_key} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status == self.STATUS_SYNCED

    def save(self, *args, **kwargs):
        # Totals always follow the stored lines.
        self.subtotal = self.total = items_total(self.items or [])
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "items" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"subtotal", "total"}
        self.full_clean()
        return super().save(*args, **kwargs)

    def _transition(self, target_status: str, updates: dict) -> None:
        with transaction.atomic():
            current = type(self).objects.select_for_update().get(pk=self.pk)
            if target_status != current.status:
                allowed = self.ALLOWED_TRANSITIONS.get(current.status, set())
                if target_status not in allowed:
                    raise InvalidOrderTransition(current.status, target_status)
                current.status = target_status
            elif current.status == self.STATUS_SYNCED:
                raise InvalidOrderTransition(current.status, target_status)
            for attr, value in updates.items():
                setattr(current, attr, value)
            update_fields = set(updates.keys()) | {"status", "updated_at"}
            current.save(update_fields=list(update_fields))
        self.refresh_from_db()

    def mark_synced(self, snelstart_order_id: str) -> None:
        self._transition(
            self.STATUS_SYNCED,
            {
                "snelstart_order_id": snelstart_order_id,
                "synced_at": timezone.now(),
                "error_message": "",
            },
        )

    def record_sync_failure(self, error_message: str, *, retry_count: int, exhausted: bool) -> None:
        target = self.STATUS_FAILED if exhausted else self.STATUS_PENDING_SYNC
        self._transition(target, {"error_message": error_message, "retry_count": retry_count})

    def reset_for_retry(self) -> None:
        self._transition(self.STATUS_PENDING_SYNC, {"retry_count": 0, "error_message": ""})
