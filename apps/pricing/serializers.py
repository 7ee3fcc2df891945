from decimal import Decimal

from rest_framework import serializers

from .models import PriceOverrideRule, rule_field_errors


class PriceOverrideRuleSerializer(serializers.ModelSerializer):
    fixed_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0.01"), required=False, allow_null=True
    )
    discount_percent = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        required=False,
        allow_null=True,
    )
    priority = serializers.IntegerField(min_value=1)

    class Meta:
        model = PriceOverrideRule
        fields = (
            "id",
            "type",
            "product_id",
            "category_id",
            "customer_id",
            "fixed_price",
            "discount_percent",
            "priority",
            "valid_from",
            "valid_to",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "created_at", "updated_at")

    def validate(self, attrs):
        values = {}
        if self.instance is not None:
            for field_name in (
                "type",
                "product_id",
                "category_id",
                "customer_id",
                "fixed_price",
                "discount_percent",
                "valid_from",
                "valid_to",
            ):
                values[field_name] = getattr(self.instance, field_name)
        values.update(attrs)
        errors = rule_field_errors(values)
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class PriceQuerySerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    category_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    customer_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    base_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
