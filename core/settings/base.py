from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import environ
from celery.schedules import crontab

env = environ.Env()
environ.Env.read_env()

# Core paths
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Environment selection
ENVIRONMENT = env("DJANGO_ENV", default="local")

# Security & basic config
SECRET_KEY = env("SECRET_KEY")
DEBUG = env.bool("DEBUG", default=False)

ALLOWED_HOSTS: list[str] = env.list("ALLOWED_HOSTS", default=["localhost"])
CSRF_TRUSTED_ORIGINS: list[str] = env.list("CSRF_TRUSTED_ORIGINS", default=[])

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "corsheaders",
    "django_filters",
    "django_extensions",

    # Project apps
    "apps.audit",
    "apps.snelstart",
    "apps.pricing",
    "apps.orders",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "core.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "core.wsgi.application"

# Database configuration
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# Cache
CACHES = {
    "default": {
        "BACKEND": "django_redis.cache.RedisCache",
        "LOCATION": env("REDIS_URL", default="redis://localhost:6379/0"),
        "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
        "KEY_PREFIX": "snelorder",
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "nl-nl"
TIME_ZONE = "Europe/Amsterdam"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Static files storage using WhiteNoise
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# DRF
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.AllowAny",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
    ),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=60),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=7),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

# CORS
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [
    env("FRONTEND_URL", default="http://localhost:5173"),
]

# Celery
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://localhost:6379/1")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default=None)
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ROUTES = {
    "apps.orders.tasks.sync_order": {"queue": "order-sync"},
    "apps.orders.tasks.sync_pending_orders": {"queue": "order-sync"},
}
CELERY_WORKER_CONCURRENCY = env.int("CELERY_WORKER_CONCURRENCY", default=5)
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_BEAT_SCHEDULE = {
    "sync-pending-orders": {
        "task": "apps.orders.tasks.sync_pending_orders",
        "schedule": crontab(minute="*/10"),
    },
}

# SnelStart
SNELSTART_API_BASE_URL = env("SNELSTART_API_BASE_URL", default="https://b2bapi.snelstart.nl")
SNELSTART_API_AUTH_URL = env("SNELSTART_API_AUTH_URL", default="https://auth.snelstart.nl/b2b/token")
SNELSTART_MOCK = env.bool("SNELSTART_MOCK", default=False)
SNELSTART_TIMEOUT_S = env.int("SNELSTART_TIMEOUT_S", default=30)
SNELSTART_SUBSCRIPTION_KEY = env("SNELSTART_API_SUB_KEY", default="")
SNELSTART_INTEGRATION_KEY = env("SNELSTART_INTEGRATION_KEY", default="")
SNELSTART_ORDER_MEMO = env("SNELSTART_ORDER_MEMO", default="Order uit de bestel-app")
# Derives the key that encrypts SnelStart credentials stored in the database.
ENCRYPTION_MASTER_KEY = env("ENCRYPTION_MASTER_KEY", default="")

# Order sync
ORDER_SYNC_MAX_ATTEMPTS = env.int("ORDER_SYNC_MAX_ATTEMPTS", default=5)
ORDER_SYNC_BACKOFF_SECONDS = env.int("ORDER_SYNC_BACKOFF_SECONDS", default=2)
ORDER_SYNC_FAIL_FAST_ON_PERMANENT_ERRORS = env.bool(
    "ORDER_SYNC_FAIL_FAST_ON_PERMANENT_ERRORS", default=False
)
ORDER_SYNC_STALE_AFTER_SECONDS = env.int("ORDER_SYNC_STALE_AFTER_SECONDS", default=900)

# Pricing
PRICING_CACHE_TTL = env.int("PRICING_CACHE_TTL", default=300)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": env("LOG_LEVEL", default="INFO"),
    },
    "loggers": {
        "apps": {"level": env("APPS_LOG_LEVEL", default="INFO"), "propagate": True},
    },
}

if ENVIRONMENT == "local":
    INTERNAL_IPS = ["127.0.0.1", "0.0.0.0", "localhost"]
    CORS_ALLOW_ALL_ORIGINS = True

if ENVIRONMENT == "production":
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 60 * 60 * 24 * 30
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
else:
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=False)
