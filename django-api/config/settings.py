"""Django settings for the workshop registration service.

Values come from the environment; a .env file next to manage.py is loaded first.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "insecure-development-key")
DEBUG = env_bool("DJANGO_DEBUG")
ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "registration",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
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

DATABASES = {
    "default": {
        "ENGINE": os.getenv("DATABASE_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DATABASE_NAME", str(BASE_DIR / "registration.sqlite3")),
        "USER": os.getenv("DATABASE_USER", ""),
        "PASSWORD": os.getenv("DATABASE_PASSWORD", ""),
        "HOST": os.getenv("DATABASE_HOST", ""),
        "PORT": os.getenv("DATABASE_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "America/Los_Angeles")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "25"))
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = env_bool("EMAIL_USE_TLS")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "noreply@example.com")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "registration": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

REGISTRATION = {
    "PRODUCT_CATALOG": "registration.gateways.catalog.SettingsProductCatalog",
    "PAYMENT_GATEWAY": os.getenv("REGISTRATION_PAYMENT_GATEWAY", ""),
    "EMAIL_GATEWAY": "registration.gateways.email.DjangoEmailGateway",
    "CALENDAR_MIRROR": os.getenv("REGISTRATION_CALENDAR_MIRROR", ""),
    "TEMPLATE_PROVIDER": "registration.gateways.templates.DatabaseTemplateProvider",
    "PRODUCTS": {
        "prod-3day": {"name": "3-Day AI Workshop", "price": "3000.00", "duration_days": 3},
        "prod-5day": {"name": "5-Day AI Workshop", "price": "4500.00", "duration_days": 5},
    },
    "EVENT_START_TIME": os.getenv("REGISTRATION_EVENT_START_TIME", "09:00"),
    "EVENT_END_TIME": os.getenv("REGISTRATION_EVENT_END_TIME", "17:00"),
    "CONFIRMATION_PREFIX": "YOLO",
    "REMINDER_OFFSETS": [
        ("reminder_48h", -48, "start"),
        ("reminder_24h", -24, "start"),
        ("reminder_2h", -2, "start"),
        ("post_event", 2, "end"),
    ],
    "REMINDER_MAX_ATTEMPTS": 3,
    "REMINDER_BATCH_SIZE": 50,
    "REMINDER_SEND_DELAY_SECONDS": float(os.getenv("REGISTRATION_REMINDER_SEND_DELAY", "1.0")),
    "REMINDER_CLAIM_TIMEOUT_MINUTES": 15,
    # Pending purchases older than this are closed by reconcile_purchases.
    "PENDING_LEASE_MINUTES": int(os.getenv("REGISTRATION_PENDING_LEASE_MINUTES", "30")),
}
