# config/settings/base.py
from pathlib import Path
import os
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps (leaf first)
    "am_core.common.apps.CommonConfig",
    "am_core.audit.apps.AuditConfig",
    "am_core.sites.apps.SitesConfig",
    "am_core.assets.apps.AssetsConfig",
    "am_core.movements.apps.MovementsConfig",
    "am_core.discrepancies.apps.DiscrepanciesConfig",
    "am_core.reconciliation.apps.ReconciliationConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",

    "django.contrib.auth.middleware.AuthenticationMiddleware",

    # request_id + client ip for the error envelope and the audit ledger
    "am_core.common.middleware.RequestContextMiddleware",

    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
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
    }
]

WSGI_APPLICATION = "config.wsgi.application"

# ---------------------------------------------------------------------------
# Movement / reconciliation policy
# ---------------------------------------------------------------------------
ASSET_MOVEMENTS = {
    # Movement types that may complete straight from REQUESTED.
    "SELF_COMPLETING_TYPES": [
        t.strip().upper()
        for t in os.getenv("AM_SELF_COMPLETING_TYPES", "CHECKOUT,RETURN").split(",")
        if t.strip()
    ],
    "DEFAULT_DISCREPANCY_PRIORITY": os.getenv("AM_DEFAULT_DISCREPANCY_PRIORITY", "MEDIUM"),
    "DB_STATEMENT_TIMEOUT_MS": int(os.getenv("AM_DB_STATEMENT_TIMEOUT_MS", "5000")),
    "DB_LOCK_TIMEOUT_MS": int(os.getenv("AM_DB_LOCK_TIMEOUT_MS", "3000")),
    "AUDIT_PAGE_SIZE": int(os.getenv("AM_AUDIT_PAGE_SIZE", "50")),
}

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "am"),
        "USER": os.getenv("DB_USER", "am"),
        "PASSWORD": os.getenv("DB_PASSWORD", "am"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
        # Bounded storage calls: expiry surfaces as PersistenceError / ConflictError.
        "OPTIONS": {
            "options": (
                f"-c statement_timeout={ASSET_MOVEMENTS['DB_STATEMENT_TIMEOUT_MS']} "
                f"-c lock_timeout={ASSET_MOVEMENTS['DB_LOCK_TIMEOUT_MS']}"
            ),
        },
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",

    # Standard error envelope
    "EXCEPTION_HANDLER": "am_core.common.api.exceptions.api_exception_handler",

    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
    ],

    "DEFAULT_PAGINATION_CLASS": "am_core.common.api.pagination.DefaultPagination",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Asset Movement API",
    "DESCRIPTION": "Movement state machine, discrepancy reconciliation and audit ledger",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # Remove legacy /api/* endpoints, keep /api/v1/*
    "PREPROCESSING_HOOKS": [
        "am_core.common.spectacular_hooks.preprocess_exclude_legacy_api",
    ],

    # Several models expose a `status` field; name the enums explicitly.
    "ENUM_NAME_OVERRIDES": {
        "MovementStatusEnum": "am_core.movements.models.MovementStatus",
        "DiscrepancyStatusEnum": "am_core.discrepancies.models.DiscrepancyStatus",
        "AssetStatusEnum": "am_core.assets.models.AssetStatus",
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=10),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=14),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": True,
}

# CORS settings
# Development
CORS_ALLOW_ALL_ORIGINS = True  # Only for development!
CORS_ALLOW_CREDENTIALS = True

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "loggers": {
        "am_core": {
            "handlers": ["console"],
            "level": os.getenv("AM_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "django.request": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    },
}
