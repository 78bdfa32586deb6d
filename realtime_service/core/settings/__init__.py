"""Settings package.

Each concern has its own frozen pydantic-settings model and cached loader.
"""

from __future__ import annotations

from .app import AppSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_logging_settings,
    get_realtime_settings,
    get_supabase_settings,
)
from .logs import LoggingSettings
from .realtime import RealtimeSettings
from .supabase import SupabaseSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "RealtimeSettings",
    "SupabaseSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_logging_settings",
    "get_realtime_settings",
    "get_supabase_settings",
]
