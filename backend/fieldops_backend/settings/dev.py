# backend/fieldops_backend/settings/dev.py
from .base import *

DEBUG = True

ALLOWED_HOSTS = ["*", "localhost", "127.0.0.1"]

LOGGING["root"]["level"] = "DEBUG"

DATABASES = {
    "default": {"ENGINE": "django.db.backends.sqlite3", "NAME": str(BASE_DIR / "db.sqlite3")}
}
