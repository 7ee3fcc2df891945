from __future__ import annotations

import operator
from decimal import Decimal, InvalidOperation
from functools import reduce
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.core.models import TimeStampedModel

PRODUCT_CUSTOMER_FIXED = "PRODUCT_CUSTOMER_FIXED"
PRODUCT_CUSTOMER_PERCENT = "PRODUCT_CUSTOMER_PERCENT"
CATEGORY_CUSTOMER_PERCENT = "CATEGORY_CUSTOMER_PERCENT"
GLOBAL_PRODUCT_FIXED = "GLOBAL_PRODUCT_FIXED"
GLOBAL_PRODUCT_PERCENT = "GLOBAL_PRODUCT_PERCENT"
GLOBAL_CATEGORY_PERCENT = "GLOBAL_CATEGORY_PERCENT"

FIXED_TYPES = {PRODUCT_CUSTOMER_FIXED, GLOBAL_PRODUCT_FIXED}
PERCENT_TYPES = {PRODUCT_CUSTOMER_PERCENT, CATEGORY_CUSTOMER_PERCENT, GLOBAL_PRODUCT_PERCENT, GLOBAL_CATEGORY_PERCENT}

# Scoping fields each rule type must carry.
REQUIRED_SCOPE = {
    PRODUCT_CUSTOMER_FIXED: ("product_id", "customer_id"),
    PRODUCT_CUSTOMER_PERCENT: ("product_id", "customer_id"),
    CATEGORY_CUSTOMER_PERCENT: ("category_id", "customer_id"),
    GLOBAL_PRODUCT_FIXED: ("product_id",),
    GLOBAL_PRODUCT_PERCENT: ("product_id",),
    GLOBAL_CATEGORY_PERCENT: ("category_id",),
}


def rule_field_errors(values: Dict[str, Any]) -> Dict[str, str]:
    """Return field -> message for an inconsistent rule definition."""
    errors: Dict[str, str] = {}
    rule_type = values.get("type")
    if rule_type not in REQUIRED_SCOPE:
        errors["type"] = f"Unknown rule type {rule_type!r}."
        return errors

    for field_name in REQUIRED_SCOPE[rule_type]:
        if not values.get(field_name):
            errors[field_name] = f"Required for {rule_type} rules."

    fixed_price = values.get("fixed_price")
    discount_percent = values.get("discount_percent")
    if rule_type in FIXED_TYPES:
        if fixed_price is None:
            errors["fixed_price"] = "Fixed price rules need a fixed_price."
        if discount_percent is not None:
            errors["discount_percent"] = "Fixed price rules cannot carry a discount_percent."
    else:
        if discount_percent is None:
            errors["discount_percent"] = "Percent rules need a discount_percent."
        else:
            try:
                in_range = Decimal("0") <= Decimal(str(discount_percent)) <= Decimal("100")
            except InvalidOperation:
                in_range = False
            if not in_range:
                errors["discount_percent"] = "Must be between 0 and 100."
        if fixed_price is not None:
            errors["fixed_price"] = "Percent rules cannot carry a fixed_price."

    valid_from = values.get("valid_from")
    valid_to = values.get("valid_to")
    if valid_from and valid_to and valid_to < valid_from:
        errors["valid_to"] = "valid_to cannot be earlier than valid_from."
    return errors


class PriceOverrideRuleQuerySet(models.QuerySet):
    def active_at(self, now=None):
        now = now or timezone.now()
        return self.filter(is_active=True, valid_from__lte=now).filter(
            Q(valid_to__isnull=True) | Q(valid_to__gte=now)
        )

    def matching(self, *, product_id: Optional[str], category_id: Optional[str], customer_id: Optional[str]):
        predicates = []
        if product_id and customer_id:
            predicates.append(
                Q(
                    type__in=(PRODUCT_CUSTOMER_FIXED, PRODUCT_CUSTOMER_PERCENT),
                    product_id=product_id,
                    customer_id=customer_id,
                )
            )
        if category_id and customer_id:
            predicates.append(Q(type=CATEGORY_CUSTOMER_PERCENT, category_id=category_id, customer_id=customer_id))
        if product_id:
            predicates.append(Q(type__in=(GLOBAL_PRODUCT_FIXED, GLOBAL_PRODUCT_PERCENT), product_id=product_id))
        if category_id:
            predicates.append(Q(type=GLOBAL_CATEGORY_PERCENT, category_id=category_id))
        if not predicates:
            return self.none()
        return self.filter(reduce(operator.or_, predicates))

    def applicable(self, *, product_id, category_id, customer_id, now=None):
        return (
            self.active_at(now)
            .matching(product_id=product_id, category_id=category_id, customer_id=customer_id)
            .order_by("-priority", "created_at")
        )


class PriceOverrideRule(TimeStampedModel):
    """Scoped pricing exception: a fixed price or a percentage off the base price."""

    TYPE_CHOICES = (
        (PRODUCT_CUSTOMER_FIXED, "Product + customer, fixed price"),
        (PRODUCT_CUSTOMER_PERCENT, "Product + customer, percent"),
        (CATEGORY_CUSTOMER_PERCENT, "Category + customer, percent"),
        (GLOBAL_PRODUCT_FIXED, "Product, fixed price"),
        (GLOBAL_PRODUCT_PERCENT, "Product, percent"),
        (GLOBAL_CATEGORY_PERCENT, "Category, percent"),
    )

    type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    product_id = models.CharField(max_length=64, blank=True, default="")
    category_id = models.CharField(max_length=64, blank=True, default="")
    customer_id = models.CharField(max_length=64, blank=True, default="")
    fixed_price = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, blank=True, null=True)
    priority = models.IntegerField()
    valid_from = models.DateTimeField(default=timezone.now)
    valid_to = models.DateTimeField(blank=True, null=True)
    is_active = models.BooleanField(default=True)

    objects = PriceOverrideRuleQuerySet.as_manager()

    class Meta:
        app_label = "pricing"
        ordering = ("-priority", "created_at")
        indexes = [
            models.Index(fields=("product_id", "customer_id"), name="idx_rule_product_customer"),
            models.Index(fields=("category_id", "customer_id"), name="idx_rule_category_customer"),
            models.Index(fields=("is_active", "valid_from"), name="idx_rule_active_window"),
        ]

    def __str__(self) -> str:  # pragma: no cover - debug aid
        return f"{self.type} p{self.priority} ({self.product_id or self.category_id})"

    @property
    def is_fixed(self) -> bool:
        return self.type in FIXED_TYPES

    def applies_to(self, product_id: Optional[str], category_id: Optional[str], customer_id: Optional[str]) -> bool:
        if self.type in (PRODUCT_CUSTOMER_FIXED, PRODUCT_CUSTOMER_PERCENT):
            return bool(product_id) and self.product_id == product_id and self.customer_id == customer_id
        if self.type == CATEGORY_CUSTOMER_PERCENT:
            return bool(category_id) and self.category_id == category_id and self.customer_id == customer_id
        if self.type in (GLOBAL_PRODUCT_FIXED, GLOBAL_PRODUCT_PERCENT):
            return bool(product_id) and self.product_id == product_id
        if self.type == GLOBAL_CATEGORY_PERCENT:
            return bool(category_id) and self.category_id == category_id
        return False

    def clean(self):
        errors = rule_field_errors(
            {
                "type": self.type,
                "product_id": self.product_id,
                "category_id": self.category_id,
                "customer_id": self.customer_id,
                "fixed_price": self.fixed_price,
                "discount_percent": self.discount_percent,
                "valid_from": self.valid_from,
                "valid_to": self.valid_to,
            }
        )
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
