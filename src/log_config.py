"""
Rolling Logger Configuration
Immutable, validated configuration with functional updates, JSON and
environment loading.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from log_errors import ConfigError
from log_levels import LogLevel, RollingSizeOptions, RollingTimeOption


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "config"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class _FrozenConfig(BaseModel):
    """Frozen model whose validation failures surface as ConfigError."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __init__(self, **data: Any):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid {type(self).__name__}: {_describe(exc)}") from exc

    def _replace(self, **changes: Any):
        data = self.model_dump()
        data.update(changes)
        return type(self)(**data)


class RollingConfig(_FrozenConfig):
    """Rotation thresholds: calendar interval and maximum file size."""

    time_interval: RollingTimeOption = RollingTimeOption.Hour
    max_bytes: int = Field(default=RollingSizeOptions.FiveMB, ge=RollingSizeOptions.MINIMUM)

    @field_validator("time_interval", mode="before")
    @classmethod
    def _parse_time_interval(cls, value):
        return RollingTimeOption.parse(value)

    @field_validator("max_bytes", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("max_bytes must be an integer")
        return value

    @classmethod
    def with_defaults(cls) -> "RollingConfig":
        return cls()

    def with_time_interval(self, time_interval: Union[RollingTimeOption, str]) -> "RollingConfig":
        return self._replace(time_interval=time_interval)

    def with_max_bytes(self, max_bytes: int) -> "RollingConfig":
        return self._replace(max_bytes=max_bytes)


class LogConfig(_FrozenConfig):
    """Complete logger configuration."""

    level: LogLevel = LogLevel.Info
    file_prefix: str = Field(default="app_", max_length=128, pattern=r"^[^/\\\x00]*$")
    directory: str = Field(default="logs", min_length=1)
    rolling: RollingConfig = Field(default_factory=RollingConfig)

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value):
        return LogLevel.parse(value)

    @classmethod
    def with_defaults(cls) -> "LogConfig":
        return cls()

    def with_log_level(self, level: Union[LogLevel, int, str]) -> "LogConfig":
        return self._replace(level=level)

    def with_file_prefix(self, file_prefix: str) -> "LogConfig":
        return self._replace(file_prefix=file_prefix)

    def with_directory(self, directory: Union[str, Path]) -> "LogConfig":
        return self._replace(directory=str(directory))

    def with_rolling_config(self, rolling: Union[RollingConfig, Dict[str, Any]]) -> "LogConfig":
        if isinstance(rolling, dict):
            rolling = RollingConfig(**rolling)
        return self._replace(rolling=rolling)

    def with_time_interval(self, time_interval: Union[RollingTimeOption, str]) -> "LogConfig":
        return self._replace(rolling=self.rolling.with_time_interval(time_interval))

    def with_max_bytes(self, max_bytes: int) -> "LogConfig":
        return self._replace(rolling=self.rolling.with_max_bytes(max_bytes))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogConfig":
        """
        Build a config from plain data.

        Accepts the `rolling_config`/`time_threshold`/`size_threshold`
        spellings used by older config files as synonyms.
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Config must be a JSON object, got {type(data).__name__}")

        data = dict(data)
        if "rolling_config" in data:
            if "rolling" in data:
                raise ConfigError("Config cannot set both 'rolling' and 'rolling_config'")
            data["rolling"] = data.pop("rolling_config")

        rolling = data.get("rolling")
        if rolling is not None:
            if not isinstance(rolling, dict):
                raise ConfigError("'rolling' must be an object")
            rolling = dict(rolling)
            if "time_threshold" in rolling:
                rolling["time_interval"] = rolling.pop("time_threshold")
            if "size_threshold" in rolling:
                rolling["max_bytes"] = rolling.pop("size_threshold")
            data["rolling"] = RollingConfig(**rolling)

        return cls(**data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "LogConfig":
        """Load a config from a JSON file."""
        try:
            raw = Path(path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as exc:
            raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc

        return cls.from_dict(data)

    @classmethod
    def from_settings(cls, settings: Optional["LoggerSettings"] = None) -> "LogConfig":
        """Build a config from environment settings, layered over an optional JSON file."""
        if settings is None:
            try:
                settings = LoggerSettings()
            except ValidationError as exc:
                raise ConfigError(f"Invalid logger settings: {_describe(exc)}") from exc

        config = cls.from_json(settings.config_file) if settings.config_file else cls.with_defaults()

        if settings.level is not None:
            config = config.with_log_level(settings.level)
        if settings.file_prefix is not None:
            config = config.with_file_prefix(settings.file_prefix)
        if settings.directory is not None:
            config = config.with_directory(settings.directory)
        if settings.time_interval is not None:
            config = config.with_time_interval(settings.time_interval)
        if settings.max_bytes is not None:
            config = config.with_max_bytes(settings.max_bytes)
        return config


class LoggerSettings(BaseSettings):
    """Logger settings from environment."""

    model_config = SettingsConfigDict(
        env_prefix="ROLLING_LOGGER_",
        env_file="config/.env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_file: Optional[str] = None
    level: Optional[str] = None
    file_prefix: Optional[str] = None
    directory: Optional[str] = None
    time_interval: Optional[str] = None
    max_bytes: Optional[int] = None
