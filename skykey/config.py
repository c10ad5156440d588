"""
Configuration
Settings for skykey, read from SKYKEY_* environment variables or a .env file.

Usage:
    from skykey.config import get_settings
    settings = get_settings()
    if settings.dev_mode:
        ...
"""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SkykeySettings(BaseSettings):
    """Runtime settings. Every field can be set as SKYKEY_<FIELD>."""

    model_config = SettingsConfigDict(
        env_prefix="SKYKEY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    dev_mode: bool = Field(
        default=False,
        description="Grant every permission and salt stored seeds",
    )
    mysky_domain: str = Field(
        default="skynet-mysky.hns",
        description="Domain that owns the user's own data (settings, portal accounts)",
    )
    data_dir: Path = Field(
        default=Path("./skykey-data"),
        description="Directory for the seed file and the permission store",
    )
    log_level: str = Field(
        default="INFO",
        description="Level for the skykey logger",
    )

    @property
    def seed_file(self) -> Path:
        return self.data_dir / ".seed"

    @property
    def permissions_file(self) -> Path:
        return self.data_dir / "permissions.json"


_settings: SkykeySettings | None = None


def get_settings() -> SkykeySettings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = SkykeySettings()
    return _settings


def clear_settings_cache() -> None:
    """Forget the loaded settings. Useful for testing."""
    global _settings
    _settings = None


def configure_logging(settings: SkykeySettings | None = None) -> None:
    """Set up basic logging and apply the configured level to the skykey logger."""
    settings = settings or get_settings()
    logging.basicConfig(format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logging.getLogger("skykey").setLevel(settings.log_level.upper())
