"""
Stampman configuration.

Usage in settings.py:
    STAMPMAN = {
        "CODE_TTL_MINUTES": 15,
        "LOCK_TIMEOUT_MS": 5000,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StampmanSettings:
    """Stampman configuration settings."""

    # Stamp transaction codes (QR payloads)
    CODE_TTL_MINUTES: int = 15
    CODE_LENGTH: int = 8
    # No 0/O, 1/I/L: codes are read aloud and typed by staff
    CODE_ALPHABET: str = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
    CODE_MAX_ATTEMPTS: int = 5
    CODE_RETENTION_DAYS: int = 30

    # Loyalty numbers
    LOYALTY_NUMBER_PREFIX: str = "LV"
    LOYALTY_NUMBER_MAX_ATTEMPTS: int = 5

    # Row lock wait before CONCURRENT_MODIFICATION (PostgreSQL only)
    LOCK_TIMEOUT_MS: int = 5000

    # Fallback when a reward has no usable points_cost
    DEFAULT_STAMPS_REQUIRED: int = 10

    # Read projections
    HISTORY_LIMIT: int = 50


def get_stampman_settings() -> StampmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STAMPMAN", {})
    return StampmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stampman_settings(), name)


stampman_settings = _LazySettings()
