import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PriceOverrideRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("PRODUCT_CUSTOMER_FIXED", "Product + customer, fixed price"),
                            ("PRODUCT_CUSTOMER_PERCENT", "Product + customer, percent"),
                            ("CATEGORY_CUSTOMER_PERCENT", "Category + customer, percent"),
                            ("GLOBAL_PRODUCT_FIXED", "Product, fixed price"),
                            ("GLOBAL_PRODUCT_PERCENT", "Product, percent"),
                            ("GLOBAL_CATEGORY_PERCENT", "Category, percent"),
                        ],
                        max_length=32,
                    ),
                ),
                ("product_id", models.CharField(blank=True, default="", max_length=64)),
                ("category_id", models.CharField(blank=True, default="", max_length=64)),
                ("customer_id", models.CharField(blank=True, default="", max_length=64)),
                ("fixed_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("discount_percent", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("priority", models.IntegerField()),
                ("valid_from", models.DateTimeField(default=django.utils.timezone.now)),
                ("valid_to", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ("-priority", "created_at"),
                "indexes": [
                    models.Index(fields=["product_id", "customer_id"], name="idx_rule_product_customer"),
                    models.Index(fields=["category_id", "customer_id"], name="idx_rule_category_customer"),
                    models.Index(fields=["is_active", "valid_from"], name="idx_rule_active_window"),
                ],
            },
        ),
    ]
