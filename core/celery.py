"""Celery application instance for the project."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings.local")

app = Celery("snelorder")
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
