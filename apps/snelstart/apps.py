from django.apps import AppConfig


class SnelStartConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.snelstart"
    verbose_name = "SnelStart"
