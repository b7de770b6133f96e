"""
Configuration management for SkylarFocus.

This module handles loading and validating configuration from YAML files
and environment variables using Pydantic for type safety.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"


class GeneralConfig(BaseModel):
    """General configuration."""
    name: str = "SkylarFocus"
    debug: bool = False
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    data_dir: str = "data"


class TimerConfig(BaseModel):
    """Focus timer configuration."""
    focus_seconds: int = Field(default=25 * 60, ge=60)
    short_break_seconds: int = Field(default=5 * 60, ge=60)
    long_break_seconds: int = Field(default=15 * 60, ge=60)
    sessions_before_long_break: int = Field(default=4, ge=1)
    tick_interval: float = Field(default=1.0, gt=0.0, le=60.0)
    auto_start_breaks: bool = True

    @model_validator(mode="after")
    def check_break_lengths(self) -> "TimerConfig":
        if self.long_break_seconds < self.short_break_seconds:
            raise ValueError("long_break_seconds must not be shorter than short_break_seconds")
        return self

    @property
    def focus_minutes(self) -> int:
        return self.focus_seconds // 60


class StorageConfig(BaseModel):
    """Storage locations, relative to the data directory."""
    tasks_db: str = "tasks.db"
    sessions_db: str = "sessions.db"
    history_db: str = "focus_history.db"


class NotificationConfig(BaseModel):
    """Notification configuration."""
    enabled: bool = True


class SkylarConfig(BaseModel):
    """Main SkylarFocus configuration."""
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    timer: TimerConfig = Field(default_factory=TimerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)

    def data_path(self, name: str) -> Path:
        """Resolve a storage file name against the data directory."""
        return Path(self.general.data_dir) / name


class EnvSettings(BaseSettings):
    """Environment variables settings."""

    user: str = Field(default="anon", alias="SKYLAR_USER")
    config_path: Optional[str] = Field(default=None, alias="SKYLAR_CONFIG_PATH")
    data_dir: Optional[str] = Field(default=None, alias="SKYLAR_DATA_DIR")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_yaml_config(config_path: Path | str | None = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = CONFIG_DIR / "settings.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_config(config_path: Path | str | None = None) -> SkylarConfig:
    """
    Load and return the SkylarFocus configuration.

    Merges YAML configuration with environment variables.

    Raises:
        ConfigurationError: If the YAML holds invalid values.
    """
    settings = get_env_settings()
    yaml_config = load_yaml_config(config_path or settings.config_path)

    if settings.data_dir:
        yaml_config.setdefault("general", {})["data_dir"] = settings.data_dir

    try:
        return SkylarConfig(**yaml_config)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def get_env_settings() -> EnvSettings:
    """Get environment settings."""
    return EnvSettings()


# Global configuration instances (lazy loaded)
_config: Optional[SkylarConfig] = None
_env_settings: Optional[EnvSettings] = None


def config() -> SkylarConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = get_config()
    return _config


def env() -> EnvSettings:
    """Get the global environment settings instance."""
    global _env_settings
    if _env_settings is None:
        _env_settings = get_env_settings()
    return _env_settings


def ensure_directories(cfg: Optional[SkylarConfig] = None) -> None:
    """Ensure required directories exist."""
    data_dir = Path(cfg.general.data_dir) if cfg else DATA_DIR
    for directory in (data_dir, data_dir / "logs"):
        directory.mkdir(parents=True, exist_ok=True)
