# config/settings/local.py
import os

from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

# Local development runs on SQLite unless DB_ENGINE=postgres.
if os.getenv("DB_ENGINE", "sqlite") != "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
            # seconds to wait on a locked database before OperationalError
            "OPTIONS": {"timeout": ASSET_MOVEMENTS["DB_LOCK_TIMEOUT_MS"] / 1000},
        }
    }
