"""Configuration loaded from YAML with environment overrides."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from discord_mcp.notifications.dispatcher import KNOWN_EVENTS

__all__ = [
    "Config",
    "ConfigError",
    "DiscordSettings",
    "EventSettings",
    "McpSettings",
    "ServerSettings",
    "apply_env",
    "load_config",
    "save_config",
]

LOGGER = logging.getLogger(__name__)

LogLevel = Literal["debug", "info", "warning", "error"]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when the configuration file cannot be read or is invalid."""


class DiscordSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed_guilds: tuple[str, ...] = ()
    max_message_length: int = Field(2000, ge=1, le=4000)
    rate_limit_per_minute: int = Field(30, ge=1)
    state_file: Path | None = None

    @field_validator("allowed_guilds", mode="before")
    @classmethod
    def _coerce_guild_ids(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        return value


class McpSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    server_name: str = Field("discord-mcp", min_length=1)
    version: str = "1.0.0"

    @field_validator("version", mode="before")
    @classmethod
    def _check_version(cls, value: Any) -> str:
        text = str(value)
        try:
            Version(text)
        except InvalidVersion as exc:
            raise ValueError(f"version '{text}' is not a valid version string") from exc
        return text


class ServerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    log_level: LogLevel = "info"
    debug: bool = False
    log_dir: Path | None = None

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return "warning" if lowered == "warn" else lowered
        return value

    @property
    def effective_level(self) -> int:
        if self.debug:
            return logging.DEBUG
        return logging.getLevelName(self.log_level.upper())


class EventSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    allowed_events: tuple[str, ...] = ()

    @field_validator("allowed_events", mode="before")
    @classmethod
    def _check_events(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            unknown = sorted({str(item) for item in value} - set(KNOWN_EVENTS))
            if unknown:
                raise ValueError(f"unknown event name(s): {', '.join(unknown)}")
            return tuple(str(item) for item in value)
        return value


class Config(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    mcp: McpSettings = Field(default_factory=McpSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    events: EventSettings = Field(default_factory=EventSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, source: str = "<mapping>") -> Config:
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {source}: {exc}") from exc


def load_config(path: str | Path | None) -> Config:
    """Load ``path``; a missing file yields the defaults."""

    if path is None:
        return Config()
    source = Path(path)
    if not source.exists():
        LOGGER.info("Config file %s not found; using defaults", source)
        return Config()
    try:
        with source.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {source}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Expected mapping in {source}, got {type(data).__name__}")
    return Config.from_mapping(data, source=str(source))


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def apply_env(config: Config, environ: Mapping[str, str] | None = None) -> Config:
    """Return ``config`` with ``DISCORD_*``, ``LOG_LEVEL`` and ``DISCORD_EVENTS_ENABLED`` overrides applied."""

    env = os.environ if environ is None else environ
    data = config.model_dump()
    if env.get("DISCORD_GUILD_ALLOWLIST"):
        data["discord"]["allowed_guilds"] = [
            item.strip() for item in env["DISCORD_GUILD_ALLOWLIST"].split(",") if item.strip()
        ]
    if env.get("DISCORD_STATE_FILE"):
        data["discord"]["state_file"] = env["DISCORD_STATE_FILE"]
    if env.get("LOG_LEVEL"):
        data["server"]["log_level"] = env["LOG_LEVEL"]
    if env.get("DISCORD_EVENTS_ENABLED"):
        data["events"]["enabled"] = _parse_bool("DISCORD_EVENTS_ENABLED", env["DISCORD_EVENTS_ENABLED"])
    return Config.from_mapping(data, source="environment")


def save_config(config: Config, path: str | Path) -> Path:
    """Write ``config`` as YAML readable only by the owner."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    payload = config.model_dump(mode="json")
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)
    target.chmod(0o600)
    return target
