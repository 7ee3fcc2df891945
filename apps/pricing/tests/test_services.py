import uuid
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from apps.audit.models import AuditLog
from apps.pricing.exceptions import PriceRuleNotFound, PriceRuleValidationError
from apps.pricing.models import GLOBAL_PRODUCT_PERCENT, PRODUCT_CUSTOMER_FIXED, PriceOverrideRule
from apps.pricing.services import PricingService


class PriceRuleAdministrationTests(TestCase):
    def setUp(self):
        self.service = PricingService()

    def test_create_rule_records_audit(self):
        rule = self.service.create_rule(
            {
                "type": PRODUCT_CUSTOMER_FIXED,
                "product_id": "P1",
                "customer_id": "C1",
                "fixed_price": "95.00",
                "priority": 100,
            },
            user_id="u-1",
        )

        log = AuditLog.objects.for_entity(AuditLog.ENTITY_PRICE_RULE, rule.id).get()
        self.assertEqual(log.action, "PRICE_RULE_CREATED")
        self.assertEqual(log.user_id, "u-1")

    def test_fixed_rule_without_customer_is_rejected(self):
        with self.assertRaises(PriceRuleValidationError) as ctx:
            self.service.create_rule(
                {"type": PRODUCT_CUSTOMER_FIXED, "product_id": "P1", "fixed_price": "10", "priority": 1}
            )
        self.assertIn("customer_id", ctx.exception.errors)

    def test_percent_rule_cannot_carry_fixed_price(self):
        with self.assertRaises(PriceRuleValidationError) as ctx:
            self.service.create_rule(
                {
                    "type": GLOBAL_PRODUCT_PERCENT,
                    "product_id": "P1",
                    "discount_percent": "10",
                    "fixed_price": "5",
                    "priority": 1,
                }
            )
        self.assertIn("fixed_price", ctx.exception.errors)

    def test_update_rule_keeps_existing_fields(self):
        rule = self.service.create_rule(
            {"type": GLOBAL_PRODUCT_PERCENT, "product_id": "P1", "discount_percent": "10", "priority": 1}
        )

        updated = self.service.update_rule(rule.id, {"discount_percent": "15"})

        self.assertEqual(updated.discount_percent, Decimal("15.00"))
        self.assertEqual(updated.product_id, "P1")
        self.assertTrue(
            AuditLog.objects.filter(entity_id=str(rule.id), action="PRICE_RULE_UPDATED").exists()
        )

    def test_delete_rule(self):
        rule = self.service.create_rule(
            {"type": GLOBAL_PRODUCT_PERCENT, "product_id": "P1", "discount_percent": "10", "priority": 1}
        )

        self.service.delete_rule(rule.id)

        self.assertFalse(PriceOverrideRule.objects.filter(pk=rule.id).exists())
        self.assertTrue(
            AuditLog.objects.filter(entity_id=str(rule.id), action="PRICE_RULE_DELETED").exists()
        )

    def test_unknown_rule_raises_not_found(self):
        with self.assertRaises(PriceRuleNotFound):
            self.service.get_rule(uuid.uuid4())


class PricingApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_create_and_calculate(self):
        response = self.client.post(
            reverse("pricing:rule-list"),
            {
                "type": PRODUCT_CUSTOMER_FIXED,
                "product_id": "P1",
                "customer_id": "C1",
                "fixed_price": "95.00",
                "priority": 100,
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)

        response = self.client.post(
            reverse("pricing:calculate"),
            {"product_id": "P1", "customer_id": "C1", "base_price": "100.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["price"], "95.00")

    def test_invalid_rule_returns_400(self):
        response = self.client.post(
            reverse("pricing:rule-list"),
            {"type": GLOBAL_PRODUCT_PERCENT, "product_id": "P1", "priority": 1},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("discount_percent", response.data["details"])

    def test_missing_rule_returns_404(self):
        response = self.client.delete(reverse("pricing:rule-detail", args=[uuid.uuid4()]))
        self.assertEqual(response.status_code, 404)
