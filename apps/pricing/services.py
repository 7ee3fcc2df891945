from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.cache import cache
from django.db.models import Min
from django.utils import timezone

from events import event_bus
from events.events import PriceRuleChanged

from .exceptions import PriceRuleNotFound, PriceRuleValidationError
from .models import PriceOverrideRule
from .resolver import resolve_price, to_decimal
from .serializers import PriceOverrideRuleSerializer

logger = logging.getLogger(__name__)


class PricingService:
    """Customer price resolution and price rule administration."""

    RULES_VERSION_KEY = "pricing:rules:version"
    PRICE_CACHE_KEY = "pricing:price:{version}:{product}:{category}:{customer}:{base}"

    def __init__(self, *, cache_backend=None) -> None:
        self.cache = cache_backend or cache

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def calculate_price(
        self,
        product_id: str,
        category_id: Optional[str],
        customer_id: Optional[str],
        base_price,
        *,
        now=None,
    ) -> Decimal:
        rules = PriceOverrideRule.objects.applicable(
            product_id=product_id,
            category_id=category_id,
            customer_id=customer_id,
            now=now or timezone.now(),
        )
        return resolve_price(
            rules,
            base_price,
            product_id=product_id,
            category_id=category_id,
            customer_id=customer_id,
        )

    def get_customer_price(
        self,
        product_id: str,
        category_id: Optional[str],
        customer_id: Optional[str],
        base_price,
    ) -> Decimal:
        """Cached variant of :meth:`calculate_price`.

        Entries are keyed by the rule-set version, so any rule write invalidates
        them. They also expire at the next validity boundary of a matching rule
        (a ``valid_to`` passing or a ``valid_from`` arriving), which no write
        announces.
        """
        key = self.PRICE_CACHE_KEY.format(
            version=self._rules_version(),
            product=product_id,
            category=category_id or "-",
            customer=customer_id or "-",
            base=to_decimal(base_price),
        )
        now = timezone.now()
        cached = self.cache.get(key)
        if cached is not None:
            expires_at = cached.get("expires_at")
            if expires_at is None or now < expires_at:
                return Decimal(cached["price"])

        price = self.calculate_price(product_id, category_id, customer_id, base_price, now=now)
        timeout = settings.PRICING_CACHE_TTL
        boundary = self._next_boundary(product_id, category_id, customer_id, now)
        if boundary is not None:
            timeout = min(timeout, int((boundary - now).total_seconds()))
        if timeout > 0:
            self.cache.set(key, {"price": str(price), "expires_at": boundary}, timeout=timeout)
        return price

    def _next_boundary(self, product_id, category_id, customer_id, now):
        rules = PriceOverrideRule.objects.filter(is_active=True).matching(
            product_id=product_id, category_id=category_id, customer_id=customer_id
        )
        upcoming = rules.filter(valid_from__gt=now).aggregate(at=Min("valid_from"))["at"]
        expiring = rules.filter(valid_to__gte=now).aggregate(at=Min("valid_to"))["at"]
        candidates = [moment for moment in (upcoming, expiring) if moment is not None]
        return min(candidates) if candidates else None

    # ------------------------------------------------------------------
    # Rule administration
    # ------------------------------------------------------------------
    def list_rules(self, *, product_id: Optional[str] = None):
        queryset = PriceOverrideRule.objects.all().order_by("-priority", "created_at")
        if product_id:
            queryset = queryset.filter(product_id=product_id)
        return queryset

    def get_rule(self, rule_id) -> PriceOverrideRule:
        rule = PriceOverrideRule.objects.filter(pk=rule_id).first()
        if not rule:
            raise PriceRuleNotFound(rule_id)
        return rule

    def create_rule(self, data: Dict[str, Any], *, user_id: Optional[str] = None) -> PriceOverrideRule:
        serializer = PriceOverrideRuleSerializer(data=data)
        if not serializer.is_valid():
            raise PriceRuleValidationError(serializer.errors)
        rule = serializer.save()
        self._rule_changed(rule, "PRICE_RULE_CREATED", user_id, dict(serializer.validated_data))
        logger.info("[PRICING] Created %s rule %s", rule.type, rule.id)
        return rule

    def update_rule(self, rule_id, data: Dict[str, Any], *, user_id: Optional[str] = None) -> PriceOverrideRule:
        rule = self.get_rule(rule_id)
        old = PriceOverrideRuleSerializer(rule).data
        serializer = PriceOverrideRuleSerializer(rule, data=data, partial=True)
        if not serializer.is_valid():
            raise PriceRuleValidationError(serializer.errors)
        rule = serializer.save()
        self._rule_changed(
            rule,
            "PRICE_RULE_UPDATED",
            user_id,
            {"old": dict(old), "new": dict(serializer.validated_data)},
        )
        return rule

    def delete_rule(self, rule_id, *, user_id: Optional[str] = None) -> None:
        rule = self.get_rule(rule_id)
        rule_pk = rule.pk
        rule.delete()
        self._rule_changed(None, "PRICE_RULE_DELETED", user_id, {}, rule_id=rule_pk)
        logger.info("[PRICING] Deleted rule %s", rule_pk)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _rules_version(self) -> str:
        version = self.cache.get(self.RULES_VERSION_KEY)
        if version is None:
            version = uuid.uuid4().hex
            self.cache.set(self.RULES_VERSION_KEY, version, timeout=None)
        return version

    def _rule_changed(self, rule, action: str, user_id, changes: Dict[str, Any], *, rule_id=None) -> None:
        self.cache.set(self.RULES_VERSION_KEY, uuid.uuid4().hex, timeout=None)
        event_bus.publish(
            PriceRuleChanged(
                rule_id=str(rule_id or rule.pk),
                action=action,
                user_id=str(user_id) if user_id else None,
                changes=changes,
            )
        )
