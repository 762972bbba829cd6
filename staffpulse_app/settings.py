import os
from pathlib import Path

import environ

env = environ.Env(
    DEBUG=(bool, False),
    SECRET_KEY=(str, ""),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    IDENTITY_ENCRYPTION_KEY=(str, ""),
    IDENTITY_MAX_LENGTH=(int, 254),
    FREE_TEXT_MAX_LENGTH=(int, 500),
    ANALYTICS_MIN_RESPONSES=(int, 3),
    IMPACT_MIN_RESPONSES=(int, 10),
    PERCENTILE_MIN_RESPONSES=(int, 3),
    PATTERN_MIN_RESPONSES=(int, 5),
    CONTENT_CLASSIFIER=(
        str,
        "staffpulse_app.surveys.services.content_flagging.KeywordContentClassifier",
    ),
)

BASE_DIR = Path(__file__).resolve().parent.parent
env_file = BASE_DIR / ".env"
if env_file.exists():
    environ.Env.read_env(env_file)

DEBUG = env("DEBUG")
SECRET_KEY = env("SECRET_KEY") or os.urandom(32)
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Cache doubles as the TTL store for rate limiting. Use a shared backend
# (redis/memcached) when running more than one instance.
CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://staffpulse"),
}

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # Local apps
    "staffpulse_app.core",
    "staffpulse_app.surveys",
]

LANGUAGE_CODE = "ja"

LANGUAGES = [
    ("ja", "日本語 (Japanese)"),
    ("en", "English"),
]

TIME_ZONE = "Asia/Tokyo"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Identity escrow
# Base64 of 32 random bytes. Generate with: python manage.py generate_identity_key
# Leaving this empty disables identity storage; responses are still accepted.
IDENTITY_ENCRYPTION_KEY = env("IDENTITY_ENCRYPTION_KEY")
IDENTITY_MAX_LENGTH = env("IDENTITY_MAX_LENGTH")
FREE_TEXT_MAX_LENGTH = env("FREE_TEXT_MAX_LENGTH")

# Content safety classifier (swap for a different detector without touching callers)
CONTENT_CLASSIFIER = env("CONTENT_CLASSIFIER")

# Analytics thresholds (minimum responses before a figure is reported)
ANALYTICS_MIN_RESPONSES = env("ANALYTICS_MIN_RESPONSES")
IMPACT_MIN_RESPONSES = env("IMPACT_MIN_RESPONSES")
PERCENTILE_MIN_RESPONSES = env("PERCENTILE_MIN_RESPONSES")
PATTERN_MIN_RESPONSES = env("PATTERN_MIN_RESPONSES")

# Rate limits: {"limit": requests allowed, "window_seconds": window length}
RATE_LIMITS = {
    "survey_response": {"limit": 10, "window_seconds": 60 * 60},  # 10 per hour
    "identity_reveal": {"limit": 20, "window_seconds": 60 * 60},  # 20 per hour per revealer
}
RATELIMIT_ENABLE = env.bool("RATELIMIT_ENABLE", default=True)
RATELIMIT_USE_CACHE = "default"

# Logging Configuration
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[{levelname}] {asctime} {name} {message}",
            "style": "{",
        },
        "simple": {
            "format": "[{levelname}] {message}",
            "style": "{",
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
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "staffpulse_app": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        # Identity reveal trail is always emitted, never with plaintext
        "staffpulse_app.surveys.services.identity_escrow": {
            "handlers": ["console"],
            "level": "DEBUG" if DEBUG else "INFO",
            "propagate": False,
        },
    },
}
