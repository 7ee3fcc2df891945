from django.contrib import admin, messages

from .exceptions import OrderError
from .models import LocalOrder
from .services import OrderService


@admin.register(LocalOrder)
class LocalOrderAdmin(admin.ModelAdmin):
    list_display = ("idempotency_key", "customer_id", "status", "total", "retry_count", "snelstart_order_id", "created_at")
    list_filter = ("status",)
    search_fields = ("idempotency_key", "customer_id", "snelstart_order_id")
    ordering = ("-created_at",)
    # Lines and customer change only through OrderService.update_order.
    readonly_fields = (
        "id",
        "idempotency_key",
        "customer_id",
        "items",
        "status",
        "subtotal",
        "total",
        "snelstart_order_id",
        "error_message",
        "retry_count",
        "synced_at",
        "created_at",
        "updated_at",
    )
    fieldsets = (
        (None, {"fields": ("id", "idempotency_key", "customer_id", "status")}),
        ("Lines", {"fields": ("items", "subtotal", "total")}),
        ("Sync", {"fields": ("snelstart_order_id", "synced_at", "retry_count", "error_message")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )
    actions = ("retry_sync",)

    def has_add_permission(self, request):
        return False

    @admin.action(description="Retry SnelStart sync")
    def retry_sync(self, request, queryset):
        service = OrderService()
        queued = 0
        for order in queryset:
            try:
                service.retry_order(order.id, user_id=str(request.user.pk))
            except OrderError as exc:
                self.message_user(request, f"{order.idempotency_key}: {exc}", level=messages.WARNING)
                continue
            queued += 1
        if queued:
            self.message_user(request, f"Queued {queued} order(s) for sync.", level=messages.SUCCESS)
