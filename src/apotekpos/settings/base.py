"""Base settings for Apotek POS project."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
SRC_DIR = BASE_DIR / "src"

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get("SECRET_KEY")

# Debug mode - override in dev.py
DEBUG = False

ALLOWED_HOSTS = []

# Application definition
DJANGO_APPS = [
    "django.contrib.staticfiles",
]

# Local apps
LOCAL_APPS = [
    "apotekpos.core",
    "apotekpos.pos",
]

INSTALLED_APPS = DJANGO_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "apotekpos.core.middleware.AuthTokenMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "apotekpos.urls"

WSGI_APPLICATION = "apotekpos.wsgi.application"

# No local database: every record lives in the remote POS backend
DATABASES = {}

# Cart, customer/doctor selection and pending bills are kept in the session,
# which lives in the cache (Redis when REDIS_URL is set).
REDIS_URL = os.environ.get("REDIS_URL", "")

if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        }
    }

SESSION_ENGINE = "django.contrib.sessions.backends.cache"
SESSION_SERIALIZER = "django.contrib.sessions.serializers.JSONSerializer"
SESSION_COOKIE_AGE = int(os.environ.get("SESSION_COOKIE_AGE", str(60 * 60 * 12)))
SESSION_SAVE_EVERY_REQUEST = True

# Internationalization
LANGUAGE_CODE = "id"
TIME_ZONE = os.environ.get("POS_TIME_ZONE", "Asia/Jakarta")
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# POS backend configuration
POS_API_BASE_URL = os.environ.get("POS_API_BASE_URL", "https://api-pos.masivaguna.com/api")
POS_API_TIMEOUT = float(os.environ.get("POS_API_TIMEOUT", "25"))

# Queue counter service (runs beside the terminal)
POS_QUEUE_URL = os.environ.get("POS_QUEUE_URL", "http://localhost:8081/api")

# Local device service that reports device id, MAC and network details
POS_SYSTEM_SERVICE_URL = os.environ.get("POS_SYSTEM_SERVICE_URL", "http://localhost:8321")
POS_SYSTEM_SERVICE_TIMEOUT = float(os.environ.get("POS_SYSTEM_SERVICE_TIMEOUT", "10"))

# Transaction type used when the kassa record has no default_jual
POS_DEFAULT_TRANSACTION_TYPE = os.environ.get("POS_DEFAULT_TRANSACTION_TYPE", "1")

# Cookie that carries the backend bearer token
POS_AUTH_COOKIE = os.environ.get("POS_AUTH_COOKIE", "auth-token")

# Logging configuration
LOG_FORMAT = os.environ.get("LOG_FORMAT", "verbose")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
        "json": {
            "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if LOG_FORMAT == "json" else "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.environ.get("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "apotekpos": {
            "handlers": ["console"],
            "level": os.environ.get("POS_LOG_LEVEL", "DEBUG"),
            "propagate": False,
        },
    },
}
