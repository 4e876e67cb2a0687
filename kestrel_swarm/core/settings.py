"""kestrel_swarm - Configuration system with Pydantic Settings"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

import pydantic_settings
from pydantic import Field, field_validator
from pydantic_settings import (
    DotEnvSettingsSource,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "reload_settings",
    "ENV_PREFIX",
]


ENV_PREFIX = "KESTREL_SWARM_"
APP_DIR_NAME = "kestrel-swarm"


class Settings(pydantic_settings.BaseSettings):
    """Orchestration settings with type-safe validation"""

    log_level: str = Field(default="INFO")

    # Timeouts (seconds); None disables the scope
    run_timeout_seconds: float | None = Field(default=3600.0, gt=0)
    turn_timeout_seconds: float | None = Field(default=1800.0, gt=0)

    # Transport retry policy
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_ms: float = Field(default=1000.0, ge=0)
    retry_max_delay_ms: float = Field(default=30000.0, ge=0)
    retry_jitter: bool = Field(default=True)

    # Agent turns
    max_tool_iterations: int = Field(default=25, ge=1)
    default_context_window: int = Field(default=128000, gt=0)
    context_warning_thresholds: List[int] = Field(default_factory=lambda: [80, 90])
    compaction_keep_recent_messages: int = Field(default=10, ge=0)

    # Workflows
    workflow_max_transitions: int = Field(default=100, ge=1)

    # Transcript rendering
    transcript_max_result_length: int = Field(default=500, gt=0)
    transcript_max_args_length: int = Field(default=200, gt=0)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("context_warning_thresholds")
    @classmethod
    def _validate_thresholds(cls, value: List[int]) -> List[int]:
        for threshold in value:
            if not 0 < threshold <= 100:
                raise ValueError(f"context warning threshold must be in (0, 100], got {threshold}")
        return sorted(set(value))

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}:
            raise ValueError(f"Invalid log level: {value}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[pydantic_settings.BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        del env_settings, dotenv_settings

        return (
            init_settings,
            EnvSettingsSource(settings_cls, env_prefix=ENV_PREFIX, case_sensitive=False),
            DotEnvSettingsSource(
                settings_cls,
                env_prefix=ENV_PREFIX,
                env_file=_dotenv_paths(settings_cls),
                case_sensitive=False,
            ),
            file_secret_settings,
        )


def _config_dir() -> Path:
    env_value = os.getenv("XDG_CONFIG_HOME")
    base = Path(env_value).expanduser() if env_value else Path.home() / ".config"
    return base / APP_DIR_NAME


def _dotenv_paths(settings_cls: type[pydantic_settings.BaseSettings]) -> tuple[Path | str, ...]:
    explicit_env_files = settings_cls.model_config.get("env_file")
    if explicit_env_files is not None:
        if isinstance(explicit_env_files, (str, Path)):
            return (explicit_env_files,)
        return tuple(explicit_env_files)

    return (".env", _config_dir() / ".env")


settings: Settings = Settings()


def get_settings() -> Settings:
    """
    Get the global settings singleton instance.

    Returns:
        The global Settings instance.
    """
    return settings


def reload_settings() -> Settings:
    """
    Re-read the environment and replace the global settings instance.

    Returns:
        The new Settings instance.
    """
    global settings
    settings = Settings()
    return settings
