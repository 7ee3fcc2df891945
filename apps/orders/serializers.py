from decimal import Decimal

from rest_framework import serializers

from .models import LocalOrder


class OrderItemSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    sku = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    base_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    vat_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than zero.")
        return value


class CreateOrderSerializer(serializers.Serializer):
    idempotency_key = serializers.CharField(max_length=191)
    customer_id = serializers.CharField(max_length=64)
    items = OrderItemSerializer(many=True, allow_empty=False)


class UpdateOrderSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=64, required=False)
    items = OrderItemSerializer(many=True, allow_empty=False, required=False)


class LocalOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = LocalOrder
        fields = (
            "id",
            "idempotency_key",
            "customer_id",
            "items",
            "subtotal",
            "total",
            "status",
            "snelstart_order_id",
            "error_message",
            "retry_count",
            "synced_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields
