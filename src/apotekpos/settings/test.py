"""Test settings for Apotek POS."""

from .base import *  # noqa: F401,F403

SECRET_KEY = "test-secret-key-not-for-production"
DEBUG = True

ALLOWED_HOSTS = ["testserver", "localhost"]

POS_API_BASE_URL = "https://pos-backend.test/api"
POS_QUEUE_URL = "http://queue.test/api"
POS_SYSTEM_SERVICE_URL = "http://device.test"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "WARNING"},
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}
