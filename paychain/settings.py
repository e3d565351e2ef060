import os
from decimal import Decimal
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

from paychain.config import (
    build_databases,
    env_bool,
    env_decimal,
    env_float,
    env_int,
    env_list,
    load_environment,
)

BASE_DIR = Path(__file__).resolve().parent.parent
load_environment(BASE_DIR)

DEBUG = env_bool("DEBUG", default=True)

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "")
if not SECRET_KEY:
    if DEBUG:
        SECRET_KEY = "dev-only-secret-key"
    else:
        raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set when DEBUG=False")

ALLOWED_HOSTS = env_list("ALLOWED_HOSTS", ["127.0.0.1", "localhost", "testserver"])
if not DEBUG and not ALLOWED_HOSTS:
    raise ImproperlyConfigured("ALLOWED_HOSTS must be set when DEBUG=False")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework.authtoken",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "paychain.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "paychain.wsgi.application"

DATABASE_URL, DATABASES = build_databases(BASE_DIR)

if not DEBUG and not DATABASE_URL:
    raise ImproperlyConfigured("Set DATABASE_URL when DEBUG=False")

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "EXCEPTION_HANDLER": "payments.api.exceptions.custom_exception_handler",
}

# Payments
PAYMENT_FEE_RATE = Decimal("0.001")
PAYMENT_MAX_AMOUNT = env_decimal("PAYMENT_MAX_AMOUNT", "10000000", positive=True)

# Settlement confirmation: each attempt is bounded and retried with jittered backoff.
PAYMENT_SETTLEMENT_DELAY_SECONDS = env_float(
    "PAYMENT_SETTLEMENT_DELAY_SECONDS", 2.0, minimum=0
)
PAYMENT_SETTLEMENT_TIMEOUT_SECONDS = env_float(
    "PAYMENT_SETTLEMENT_TIMEOUT_SECONDS", 10.0, positive=True
)
PAYMENT_SETTLEMENT_MAX_ATTEMPTS = env_int(
    "PAYMENT_SETTLEMENT_MAX_ATTEMPTS", 3, minimum=1
)
PAYMENT_SETTLEMENT_RETRY_BASE_DELAY = env_float(
    "PAYMENT_SETTLEMENT_RETRY_BASE_DELAY", 0.5, minimum=0
)
PAYMENT_SETTLEMENT_RETRY_MAX_DELAY = env_float(
    "PAYMENT_SETTLEMENT_RETRY_MAX_DELAY", 4.0, minimum=0
)

# AI gateway
AI_GATEWAY_URL = os.getenv(
    "AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1/chat/completions"
)
AI_GATEWAY_API_KEY = os.getenv("AI_GATEWAY_API_KEY", "")
AI_GATEWAY_MODEL = os.getenv("AI_GATEWAY_MODEL", "google/gemini-2.5-flash")
AI_GATEWAY_TIMEOUT = env_float("AI_GATEWAY_TIMEOUT", 30.0, positive=True)
AI_GATEWAY_CONNECT_TIMEOUT = env_float("AI_GATEWAY_CONNECT_TIMEOUT", 5.0, positive=True)
AI_DAILY_REQUEST_LIMIT = env_int("AI_DAILY_REQUEST_LIMIT", 100, minimum=1)

LOG_LEVEL = os.getenv("PAYCHAIN_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "structured": {
            "format": (
                '{"ts":"%(asctime)s","level":"%(levelname)s",'
                '"logger":"%(name)s","message":"%(message)s"}'
            ),
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
        },
    },
    "loggers": {
        "payments": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
