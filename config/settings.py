"""
POS – Django Settings (Infrastructure Only)
============================================
Django serves as the HTTP container for the register.
The register core does not depend on Django; only adapters/ and
config/ import it.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("POS_SECRET_KEY", "pos-dev-key-replace-before-deployment")

DEBUG = os.environ.get("POS_DEBUG", "1") == "1"

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL ───────────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

# ── Database ──────────────────────────────────────────────────
# Django's own tables only; sales live in the external ledger.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Register ──────────────────────────────────────────────────
# Parsed by core.config.load_register_settings.
POS_REGISTER = {
    "alert_ttl_seconds": 5,
    "freshness_ttl_seconds": 3,
    "print_after_sale": True,
    "open_cash_drawer": os.environ.get("POS_OPEN_CASH_DRAWER", "0"),
    "strict_payment_method": False,
    "default_customer_id": 1,
    "default_customer_name": "Walk-in Customer",
    "invoice_printer": os.environ.get("POS_INVOICE_PRINTER", ""),
}

# ── Logging ───────────────────────────────────────────────────
POS_LOG_LEVEL = os.environ.get("POS_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "register": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "register",
        },
    },
    "loggers": {
        "pos": {
            "handlers": ["console"],
            "level": POS_LOG_LEVEL,
            "propagate": True,
        },
    },
}
