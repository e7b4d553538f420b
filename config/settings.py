"""
PracticeOps – Django Settings (Infrastructure Only)
=====================================================
Django hosts the database-backed pieces of PracticeOps: the
per-tenant sequence counters and the atomic/on_commit hooks the
Django unit of work is built on.

Workflow defaults live under PRACTICEOPS and are read through
core.config.WorkflowSettings.from_django_settings().
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("PRACTICEOPS_SECRET_KEY", "practiceops-dev-key")

DEBUG = os.environ.get("PRACTICEOPS_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── PracticeOps Modules ───────────────────────────────
    "core.sequences",
]

MIDDLEWARE = []

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
# Writers begin IMMEDIATE: one writer at a time on the counter row.
# The test database lives on disk; the shared-cache in-memory one
# fails concurrent writers instead of waiting.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("PRACTICEOPS_DB_NAME", BASE_DIR / "db.sqlite3"),
        "OPTIONS": {
            "transaction_mode": "IMMEDIATE",
            "timeout": 20,
        },
        "TEST": {
            "NAME": os.environ.get("PRACTICEOPS_TEST_DB_NAME", BASE_DIR / "test_db.sqlite3"),
        },
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "practiceops": {
            "handlers": ["console"],
            "level": os.environ.get("PRACTICEOPS_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}

# ── Workflow Defaults ─────────────────────────────────────────
PRACTICEOPS = {
    "invoice_prefix": "INV-",
    "proposal_prefix": "PROP-",
    "number_padding": 4,
    "default_due_days": 30,
    "default_currency": "USD",
}
