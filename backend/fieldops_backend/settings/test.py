# backend/fieldops_backend/settings/test.py
import tempfile

from .base import *

DEBUG = False
SECRET_KEY = "test-secret"
SIMPLE_JWT["SIGNING_KEY"] = SECRET_KEY

DATABASES = {"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": ":memory:"}}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
TIME_ZONE = "UTC"

REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = ["rest_framework.renderers.JSONRenderer"]
REST_FRAMEWORK["TEST_REQUEST_DEFAULT_FORMAT"] = "json"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}
MEDIA_ROOT = tempfile.mkdtemp(prefix="fieldops-media-")
STORAGE_BACKEND = "local"
STORAGE_PUBLIC_BASE_URL = ""

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"
CELERY_BEAT_SCHEDULE = {}

FIELDOPS_FEATURES = {}

LOGGING["root"]["level"] = "WARNING"
