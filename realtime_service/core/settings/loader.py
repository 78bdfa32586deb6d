"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from realtime_service.core.settings.loader import get_realtime_settings

    settings = get_realtime_settings()  # First call: loads and validates
    settings = get_realtime_settings()  # Subsequent calls: cached instance

Testing:
    In tests, clear the caches to force a reload:
    clear_all_caches()
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .logs import LoggingSettings
from .realtime import RealtimeSettings
from .supabase import SupabaseSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_supabase_settings() -> SupabaseSettings:
    """Get cached Supabase credentials.

    Returns:
        Validated and frozen SupabaseSettings instance.
    """
    return SupabaseSettings()


@lru_cache(maxsize=1)
def get_realtime_settings() -> RealtimeSettings:
    """Get cached realtime manager settings.

    Returns:
        Validated and frozen RealtimeSettings instance.
    """
    return RealtimeSettings()


def clear_all_caches() -> None:
    """Clear all settings caches (tests and hot-reload)."""
    get_app_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_supabase_settings.cache_clear()
    get_realtime_settings.cache_clear()
