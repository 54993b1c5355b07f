"""
Airswitch – Django settings.

Everything deployment-specific is read from the environment so the same
module serves local development, the test suite and production workers.
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "airswitch-dev-key-replace-before-deployment")
DEBUG = env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "airswitch",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "airswitch.middleware.RequestResponseLoggingMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

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

# ── Database ──────────────────────────────────────────────────
# PostgreSQL when POSTGRES_DB is set, SQLite otherwise.
if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "postgres"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# ── REST framework ────────────────────────────────────────────
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}

# ── Payment processors ────────────────────────────────────────
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
PAYSTACK_SECRET_KEY = os.environ.get("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.environ.get("PAYSTACK_BASE_URL", "https://api.paystack.co")
PAYSTACK_CALLBACK_URL = os.environ.get("PAYSTACK_CALLBACK_URL", "")

# ── Carrier ───────────────────────────────────────────────────
TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY", "")
TELNYX_BASE_URL = os.environ.get("TELNYX_BASE_URL", "https://api.telnyx.com/v2")
# Static API keys are treated as a bearer credential with a 24h lifespan.
TELNYX_TOKEN_LIFESPAN = int(os.environ.get("TELNYX_TOKEN_LIFESPAN", 86400))
# Base64 Ed25519 key from the carrier portal; webhook signatures are checked when set.
TELNYX_PUBLIC_KEY = os.environ.get("TELNYX_PUBLIC_KEY", "")
TELNYX_WEBHOOK_TOLERANCE = int(os.environ.get("TELNYX_WEBHOOK_TOLERANCE", 300))

GATEWAY_TIMEOUT = float(os.environ.get("GATEWAY_TIMEOUT", 15))
TOKEN_REFRESH_BUFFER = float(os.environ.get("TOKEN_REFRESH_BUFFER", 0.2))

# ── Ledger ────────────────────────────────────────────────────
POINTS_PER_USD = int(os.environ.get("POINTS_PER_USD", 100))
REFERRAL_POINTS = int(os.environ.get("REFERRAL_POINTS", 500))
FX_RATES = {"USD": {"NGN": os.environ.get("FX_USD_NGN", "1500")}}

ESIM_PLANS = [
    {
        "id": "AIRSWITCH_NG_TEST",
        "name": "Nigeria Data",
        "region": "Nigeria",
        "data": "1GB",
        "prices": {"USD": "3.00", "NGN": "4500.00"},
    },
    {
        "id": "AIRSWITCH_GLOBAL_TEST",
        "name": "Global Data",
        "region": "Global",
        "data": "1GB",
        "prices": {"USD": "5.00", "NGN": "7500.00"},
    },
]

COMPENSATION_MAX_ATTEMPTS = int(os.environ.get("COMPENSATION_MAX_ATTEMPTS", 5))
PAYMENT_RECONCILE_AFTER_MINUTES = int(os.environ.get("PAYMENT_RECONCILE_AFTER_MINUTES", 30))
PAYMENT_RECONCILE_MAX_AGE_HOURS = int(os.environ.get("PAYMENT_RECONCILE_MAX_AGE_HOURS", 72))

# ── Celery ────────────────────────────────────────────────────
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_BEAT_SCHEDULE = {
    "retry-pending-compensations": {
        "task": "airswitch.tasks.retry_pending_compensations",
        "schedule": timedelta(minutes=5),
    },
    "reconcile-pending-payments": {
        "task": "airswitch.tasks.reconcile_pending_payments",
        "schedule": timedelta(minutes=15),
    },
}

# ── Logging ───────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

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
        "level": "WARNING",
    },
    "loggers": {
        "airswitch": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
