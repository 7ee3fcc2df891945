from django.contrib import admin

from .models import PriceOverrideRule


@admin.register(PriceOverrideRule)
class PriceOverrideRuleAdmin(admin.ModelAdmin):
    list_display = ("type", "product_id", "category_id", "customer_id", "priority", "is_active", "valid_from", "valid_to")
    list_filter = ("type", "is_active")
    search_fields = ("product_id", "category_id", "customer_id")
    ordering = ("-priority", "created_at")
    readonly_fields = ("id", "created_at", "updated_at")
    fieldsets = (
        (None, {"fields": ("id", "type", "priority", "is_active")}),
        ("Scope", {"fields": ("product_id", "category_id", "customer_id")}),
        ("Price", {"fields": ("fixed_price", "discount_percent")}),
        ("Validity", {"fields": ("valid_from", "valid_to")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )
