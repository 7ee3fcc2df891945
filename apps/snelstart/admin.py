from django.contrib import admin

from .models import SnelStartConnection


@admin.register(SnelStartConnection)
class SnelStartConnectionAdmin(admin.ModelAdmin):
    list_display = ("name", "base_url", "is_active", "timeout_s", "max_retries", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("name", "base_url")
    readonly_fields = ("created_at", "updated_at", "id")
    fieldsets = (
        (None, {"fields": ("id", "name", "base_url", "auth_url")}),
        ("Credentials", {"fields": ("subscription_key", "integration_key")}),
        ("Requests", {"fields": ("timeout_s", "max_retries")}),
        ("Status", {"fields": ("is_active",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )
