"""
Django settings for the backup service.

Values come from the environment so the same module serves development,
tests and deployment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() == "true"
ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "cloudsync",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DATABASE_PATH", BASE_DIR / "db.sqlite3"),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")

# Token store written by the external sign-in flow
SECRETS_FILE = Path(os.getenv("SECRETS_FILE", BASE_DIR / ".secrets.json"))

# Backup engine
CLOUDSYNC_APP_PREFIX = os.getenv("CLOUDSYNC_APP_PREFIX", "BusinessManager")
CLOUDSYNC_PROBE_LIMIT = int(os.getenv("CLOUDSYNC_PROBE_LIMIT", "5"))
CLOUDSYNC_REQUEST_TIMEOUT = float(os.getenv("CLOUDSYNC_REQUEST_TIMEOUT", "60"))
CLOUDSYNC_DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
CLOUDSYNC_DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"

# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose" if DEBUG else "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "cloudsync": {
            "handlers": ["console"],
            "level": os.getenv("CLOUDSYNC_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")),
            "propagate": False,
        },
    },
}
