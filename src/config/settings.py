"""Django settings for the highway rest-area finder project."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BASE_DIR.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-production")
DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if host]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_areas.apps.RestAreasConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
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
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": PROJECT_ROOT / "db.sqlite3",
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]

LANGUAGE_CODE = "ko-kr"
TIME_ZONE = "Asia/Seoul"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "rest-area-finder-cache",
    }
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "rest_areas": {
            "handlers": ["console"],
            "level": os.getenv("REST_AREA_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
OSRM_TIMEOUT_SECONDS = float(os.getenv("OSRM_TIMEOUT_SECONDS", "12"))
OSRM_RETRY_COUNT = int(os.getenv("OSRM_RETRY_COUNT", "2"))
ROUTE_CACHE_TTL_SECONDS = int(os.getenv("ROUTE_CACHE_TTL_SECONDS", "600"))

FACILITY_API_BASE_URL = os.getenv("FACILITY_API_BASE_URL", "https://data.ex.co.kr/openapi")
FACILITY_API_KEY = os.getenv("FACILITY_API_KEY", "")
FACILITY_API_TIMEOUT_SECONDS = float(os.getenv("FACILITY_API_TIMEOUT_SECONDS", "10"))
FACILITY_API_RETRY_COUNT = int(os.getenv("FACILITY_API_RETRY_COUNT", "1"))
FACILITY_API_MAX_CONCURRENT = int(os.getenv("FACILITY_API_MAX_CONCURRENT", "3"))
FACILITY_CACHE_TTL_SECONDS = int(os.getenv("FACILITY_CACHE_TTL_SECONDS", "3600"))

INTERCHANGE_CACHE_TTL_SECONDS = float(os.getenv("INTERCHANGE_CACHE_TTL_SECONDS", "1800"))
INTERCHANGE_FETCH_TIMEOUT_SECONDS = float(os.getenv("INTERCHANGE_FETCH_TIMEOUT_SECONDS", "10"))

REST_AREA_FILTER_DEFAULTS = {
    "max_distance_from_route_m": float(os.getenv("REST_AREA_MAX_DISTANCE_FROM_ROUTE_M", "1000")),
    "max_distance_from_ic_m": float(os.getenv("REST_AREA_MAX_DISTANCE_FROM_IC_M", "2000")),
    "min_highway_coverage": float(os.getenv("REST_AREA_MIN_HIGHWAY_COVERAGE", "0.2")),
    "highway_confidence_threshold": float(os.getenv("REST_AREA_HIGHWAY_CONFIDENCE_THRESHOLD", "0.5")),
    "strict_mode": os.getenv("REST_AREA_STRICT_MODE", "0") == "1",
    "confidence_threshold": float(os.getenv("REST_AREA_CONFIDENCE_THRESHOLD", "0.3")),
    "min_interval_km": float(os.getenv("REST_AREA_MIN_INTERVAL_KM", "8")),
    "max_results": int(os.getenv("REST_AREA_MAX_RESULTS", "20")),
    "assumed_speed_kmh": float(os.getenv("REST_AREA_ASSUMED_SPEED_KMH", "80")),
}
