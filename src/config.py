"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

AMBER = 0xFFBF00


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Guildkeeper configuration. All values come from environment variables."""

    # Discord
    discord_token: str = Field(default="")

    # Database
    database_path: Path = Field(default=Path("data/guildkeeper.db"))

    # Turso (hosted libSQL); when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Reconciliation
    guild_sync_interval_minutes: int = Field(default=60, ge=1)
    task_sync_interval_seconds: int = Field(default=60, ge=1)
    settle_delay_seconds: float = Field(default=2.0, ge=0)
    guild_sync_policy: str = Field(default="purge", pattern="^(purge|relabel)$")
    backfill_message_limit: int = Field(default=100, ge=0)

    # Recurring messages
    default_embed_color: int = Field(default=AMBER)

    # Admin change webhook
    webhook_port: int = Field(default=8443)
    webhook_secret: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def purge_stale_servers(self) -> bool:
        return self.guild_sync_policy == "purge"


def get_embed_color(value: int | str | None) -> int | None:
    """Parse an embed color stored as an int, ``"#RRGGBB"`` or ``"0xRRGGBB"``.

    Returns None for empty values so callers can fall back to the default.
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value
    text = value.strip()
    if not text:
        return None
    if text.startswith("#"):
        return int(text[1:], 16)
    return int(text, 0)


settings = Settings()
