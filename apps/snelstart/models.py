from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils.translation import gettext_lazy as _

from .crypto import decrypt_secret, encrypt_secret


class SnelStartConnectionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def current(self):
        return self.active().order_by("-updated_at").first()


class SnelStartConnection(models.Model):
    """Credential bundle used to authenticate against the SnelStart B2B API."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=120, default="default")
    subscription_key = models.TextField(
        verbose_name=_("Subscription key"),
        help_text=_("Sent as Ocp-Apim-Subscription-Key on every request. Stored encrypted."),
    )
    integration_key = models.TextField(
        verbose_name=_("Integration key"),
        help_text=_("Client key exchanged for a bearer token. Stored encrypted."),
    )
    base_url = models.URLField(default="https://b2bapi.snelstart.nl")
    auth_url = models.URLField(default="https://auth.snelstart.nl/b2b/token")
    timeout_s = models.PositiveIntegerField(default=30)
    max_retries = models.PositiveIntegerField(default=3)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SnelStartConnectionQuerySet.as_manager()

    class Meta:
        app_label = "snelstart"
        verbose_name = _("SnelStart connection")
        verbose_name_plural = _("SnelStart connections")
        ordering = ("-updated_at",)

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} · {self.base_url}"

    def clean(self):
        if not self.subscription_key:
            raise ValidationError({"subscription_key": "Subscription key is required."})
        if not self.integration_key:
            raise ValidationError({"integration_key": "Integration key is required."})
        if self.timeout_s <= 0:
            raise ValidationError({"timeout_s": "Timeout must be greater than zero."})

    def save(self, *args, **kwargs):
        self.full_clean()
        self.subscription_key = encrypt_secret(self.subscription_key)
        self.integration_key = encrypt_secret(self.integration_key)
        with transaction.atomic():
            result = super().save(*args, **kwargs)
            # Only one connection is active at a time.
            if self.is_active:
                SnelStartConnection.objects.active().exclude(pk=self.pk).update(is_active=False)
        return result

    def get_subscription_key(self) -> str:
        return decrypt_secret(self.subscription_key)

    def get_integration_key(self) -> str:
        return decrypt_secret(self.integration_key)
