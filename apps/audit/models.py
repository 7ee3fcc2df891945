import uuid

from django.db import models


class AuditLogQuerySet(models.QuerySet):
    def for_entity(self, entity_type: str, entity_id):
        return self.filter(entity_type=entity_type, entity_id=str(entity_id))


class AuditLog(models.Model):
    """Append-only record of business actions on orders and price rules."""

    ENTITY_ORDER = "LocalOrder"
    ENTITY_PRICE_RULE = "PriceOverrideRule"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    action = models.CharField(max_length=64)
    entity_type = models.CharField(max_length=64)
    entity_id = models.CharField(max_length=64)
    user_id = models.CharField(max_length=64, blank=True)
    changes = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        app_label = "audit"
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=("entity_type", "entity_id"), name="idx_audit_entity"),
            models.Index(fields=("action", "created_at"), name="idx_audit_action"),
        ]

    def __str__(self) -> str:  # pragma: no cover - debug aid
        return f"{self.action} · {self.entity_type}:{self.entity_id}"
