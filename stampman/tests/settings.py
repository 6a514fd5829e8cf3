"""
Django settings for Stampman tests.
"""

SECRET_KEY = "test-secret-key-for-stampman-tests"

DEBUG = True

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.admin",
    "stampman",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "Europe/London"

STAMPMAN = {
    "CODE_TTL_MINUTES": 15,
    "LOCK_TIMEOUT_MS": 2000,
}
