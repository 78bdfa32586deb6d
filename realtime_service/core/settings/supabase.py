"""Supabase connection settings."""

from __future__ import annotations

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Supabase project credentials.

    Read from the same variables the web frontend uses:
    NEXT_PUBLIC_SUPABASE_URL and NEXT_PUBLIC_SUPABASE_ANON_KEY.
    SUPABASE_URL and SUPABASE_ANON_KEY are accepted as well.
    """

    url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("NEXT_PUBLIC_SUPABASE_URL", "SUPABASE_URL"),
        description="Supabase project URL",
    )
    anon_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "NEXT_PUBLIC_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY"
        ),
        description="Supabase anon (public) API key",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )

    @property
    def is_configured(self) -> bool:
        """True when both the URL and the anon key are set."""
        return bool(self.url) and self.anon_key is not None and bool(
            self.anon_key.get_secret_value()
        )
