import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SnelStartConnection",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(default="default", max_length=120)),
                (
                    "subscription_key",
                    models.CharField(
                        help_text="Sent as Ocp-Apim-Subscription-Key on every request.",
                        max_length=255,
                        verbose_name="Subscription key",
                    ),
                ),
                (
                    "integration_key",
                    models.TextField(
                        help_text="Client key exchanged for a bearer token.",
                        verbose_name="Integration key",
                    ),
                ),
                ("base_url", models.URLField(default="https://b2bapi.snelstart.nl")),
                ("auth_url", models.URLField(default="https://auth.snelstart.nl/b2b/token")),
                ("timeout_s", models.PositiveIntegerField(default=30)),
                ("max_retries", models.PositiveIntegerField(default=3)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "SnelStart connection",
                "verbose_name_plural": "SnelStart connections",
                "ordering": ("-updated_at",),
            },
        ),
    ]
