# backend/fieldops_backend/settings/base.py
import os
from pathlib import Path
from datetime import timedelta
from corsheaders.defaults import default_headers, default_methods

BASE_DIR = Path(__file__).resolve().parents[2]

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-secret")
DEBUG = os.getenv("DJANGO_DEBUG", "true").lower() == "true"
VERSION = os.getenv("APP_VERSION", "dev")
ENV = os.getenv("APP_ENV", "dev")

ALLOWED_HOSTS = [h for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,0.0.0.0").split(",") if h]
CSRF_TRUSTED_ORIGINS = [s.strip() for s in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if s.strip()]

INSTALLED_APPS = [
    "common.apps.CommonConfig",
    "core.apps.CoreConfig",
    "platformapp.apps.PlatformConfig",
    "identity.apps.IdentityConfig",
    "masters.apps.MastersConfig",
    "jobs.apps.JobsConfig",
    "attendance.apps.AttendanceConfig",

    # third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "django_filters",
    "drf_spectacular",

    # contrib
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]

AUTH_USER_MODEL = "identity.User"

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # WhiteNoise can be below CORS; it only serves /static
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "core.middleware.RequestIDMiddleware",
    "core.middleware.TimingMiddleware",
    "corsheaders.middleware.CorsMiddleware",

    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "fieldops_backend.urls"

TEMPLATES = [{
    "BACKEND": "django.template.backends.django.DjangoTemplates",
    "DIRS": [],
    "APP_DIRS": True,
    "OPTIONS": {"context_processors": [
        "django.template.context_processors.debug",
        "django.template.context_processors.request",
        "django.contrib.auth.context_processors.auth",
        "django.contrib.messages.context_processors.messages",
    ]},
}]

WSGI_APPLICATION = "fieldops_backend.wsgi.application"

if os.getenv("POSTGRES_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "fieldops"),
            "USER": os.getenv("POSTGRES_USER", "postgres"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
            "HOST": os.getenv("POSTGRES_HOST"),
            "PORT": int(os.getenv("POSTGRES_PORT", "5432")),
            "CONN_MAX_AGE": 60,
        }
    }
else:
    DATABASES = {"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": str(BASE_DIR / "db.sqlite3")}}

LANGUAGE_CODE = "en-us"; TIME_ZONE = os.getenv("TIME_ZONE", "UTC"); USE_I18N = True; USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Proxies/redirects
APPEND_SLASH = False
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# DRF
REST_FRAMEWORK = {
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PERMISSION_CLASSES": ["common.permissions.ScreenPermission"],
    "DEFAULT_AUTHENTICATION_CLASSES": ["rest_framework_simplejwt.authentication.JWTAuthentication"],
    "DEFAULT_FILTER_BACKENDS": ["django_filters.rest_framework.DjangoFilterBackend"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
    "EXCEPTION_HANDLER": "common.exceptions.api_exception_handler",
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "60/minute",
        "user": "600/minute",
    },
}
if DEBUG:
    REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"].append("rest_framework.renderers.BrowsableAPIRenderer")

SPECTACULAR_SETTINGS = {
    "TITLE": "FieldOps API",
    "DESCRIPTION": "Multi-tenant field-service management API",
    "VERSION": "1.0.0",
}

# SimpleJWT
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
    "UPDATE_LAST_LOGIN": True,
    "ALGORITHM": "HS256",
    "SIGNING_KEY": SECRET_KEY,
    "AUTH_HEADER_TYPES": ("Bearer",),
    "AUTH_HEADER_NAME": "HTTP_AUTHORIZATION",
    "USER_ID_FIELD": "id",
    "USER_ID_CLAIM": "user_id",
    "AUTH_TOKEN_CLASSES": ("rest_framework_simplejwt.tokens.AccessToken",),
    "TOKEN_TYPE_CLAIM": "token_type",
}

SESSION_ENGINE = "django.contrib.sessions.backends.db"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOGGING = {
    "version": 1, "disable_existing_loggers": False,
    "formatters": {
        "verbose": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "verbose"}},
    "loggers": {"django": {"handlers": ["console"], "level": "INFO"},
                "django.request": {"handlers": ["console"], "level": "ERROR", "propagate": False},
                "celery": {"handlers": ["console"], "level": "INFO", "propagate": False}},
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
}

# media for locally stored uploads
MEDIA_ROOT = BASE_DIR / "media"
MEDIA_URL = "/media/"

# Object storage
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
STORAGE_UPLOAD_URL = os.getenv("STORAGE_UPLOAD_URL", "")
STORAGE_PUBLIC_BASE_URL = os.getenv("STORAGE_PUBLIC_BASE_URL", "")
STORAGE_AUTH_TOKEN = os.getenv("STORAGE_AUTH_TOKEN", "")
STORAGE_TIMEOUT_SECONDS = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "10"))

# Companies
COMPANY_LOGO_KEY_PREFIX = os.getenv("COMPANY_LOGO_KEY_PREFIX", "uploads/company/logo/")
COMPANY_PROOF_KEY_PREFIX = os.getenv("COMPANY_PROOF_KEY_PREFIX", "uploads/company/proof/")

# Jobs
JOB_ATTACHMENT_MAX_BYTES = int(os.getenv("JOB_ATTACHMENT_MAX_BYTES", str(20 * 1024 * 1024)))
JOB_ATTACHMENT_MAX_FILES = int(os.getenv("JOB_ATTACHMENT_MAX_FILES", "5"))
JOB_ATTACHMENT_KEY_PREFIX = os.getenv("JOB_ATTACHMENT_KEY_PREFIX", "uploads/jobs/attachments/")
JOB_PHOTO_KEY_PREFIX = os.getenv("JOB_PHOTO_KEY_PREFIX", "uploads/jobs/photo/")

# Optional job columns, e.g. FIELDOPS_FEATURES="JOB_PHOTO=on,GRANULAR_DURATION=off"
FIELDOPS_FEATURES = {
    k.strip().upper(): v.strip()
    for k, _, v in (item.partition("=") for item in os.getenv("FIELDOPS_FEATURES", "").split(","))
    if k.strip()
}

# Attendance
ATTENDANCE_PHOTO_KEY_PREFIX = os.getenv("ATTENDANCE_PHOTO_KEY_PREFIX", "uploads/attendance/")
ATTENDANCE_AUTO_CHECKOUT_INTERVAL = float(os.getenv("ATTENDANCE_AUTO_CHECKOUT_INTERVAL", "60"))
DISABLE_ATTENDANCE_AUTO_CHECKOUT = os.getenv("DISABLE_ATTENDANCE_AUTO_CHECKOUT", "false").lower() == "true"

# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 300

CELERY_BEAT_SCHEDULE = {}
if not DISABLE_ATTENDANCE_AUTO_CHECKOUT:
    CELERY_BEAT_SCHEDULE["attendance-auto-checkout"] = {
        "task": "attendance.tasks.auto_checkout_attendance",
        "schedule": ATTENDANCE_AUTO_CHECKOUT_INTERVAL,
    }


CORS_ALLOW_ALL_ORIGINS = True           # dev convenience
CORS_ALLOW_CREDENTIALS = False
CORS_ALLOW_HEADERS = list(default_headers) + ["authorization", "content-type", "accept", "x-request-id"]
CORS_EXPOSE_HEADERS = ["Location", "X-Request-ID", "X-Response-Time-ms"]
CORS_ALLOW_METHODS = list(default_methods)
CORS_URLS_REGEX = r"^/.*$"
