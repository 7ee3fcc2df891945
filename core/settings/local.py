"""Local development settings."""
from .base import *  # noqa

DEBUG = True

INTERNAL_IPS = ["127.0.0.1", "0.0.0.0", "localhost"]

CORS_ALLOW_ALL_ORIGINS = True

# Database for local development
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": env("DB_NAME", default="snelorder"),
        "USER": env("DB_USER", default="snelorder"),
        "PASSWORD": env("DB_PASSWORD", default="snelorder"),
        "HOST": env("DB_HOST", default="localhost"),
        "PORT": env("DB_PORT", default="5432"),
    }
}

SNELSTART_MOCK = env.bool("SNELSTART_MOCK", default=True)
