from django.contrib import admin

from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "action", "entity_type", "entity_id", "user_id")
    list_filter = ("action", "entity_type")
    search_fields = ("entity_id", "user_id", "action")
    readonly_fields = ("id", "action", "entity_type", "entity_id", "user_id", "changes", "metadata", "created_at")
    date_hierarchy = "created_at"
    ordering = ("-created_at",)
    list_per_page = 50

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
