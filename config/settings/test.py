# config/settings/test.py
from .base import *  # noqa

DEBUG = False

# File-backed so concurrent tests can open a second connection from another thread.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "am_test.sqlite3",
        "TEST": {"NAME": BASE_DIR / ".am_test_db.sqlite3"},
        "OPTIONS": {
            "timeout": 20,
            # writers queue on BEGIN instead of failing mid-transaction
            "transaction_mode": "IMMEDIATE",
        },
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOGGING["loggers"]["am_core"]["level"] = "WARNING"
