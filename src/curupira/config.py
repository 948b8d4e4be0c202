"""Configuration management for curupira.

Settings come from ``curupira.toml`` (current or parent directories), then
``CURUPIRA_*`` environment variables override individual keys.

PUBLIC API:
  - Config: Top-level configuration
  - ChromeConfig, ServerConfig, LoggingConfig, ScreenshotConfig, StoreConfig: Sections
  - load_config: Build Config from file and environment
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

from curupira.errors import ConfigError

__all__ = [
    "Config",
    "ChromeConfig",
    "ServerConfig",
    "LoggingConfig",
    "ScreenshotConfig",
    "StoreConfig",
    "load_config",
]

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "curupira.toml"


@dataclass
class ChromeConfig:
    """Browser debug endpoint settings."""

    host: str = "localhost"
    port: int = 9222
    connect_timeout: float = 5.0
    command_timeout: float = 30.0
    connect_on_start: bool = False
    auto_attach: bool = True
    enable_domains: list[str] = field(default_factory=lambda: ["Runtime", "Page", "Network", "Log"])


@dataclass
class ServerConfig:
    """HTTP API bind settings."""

    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class ScreenshotConfig:
    directory: str = "~/.cache/curupira/screenshots"


@dataclass
class StoreConfig:
    max_events: int = 5000


@dataclass
class Config:
    """Complete curupira configuration."""

    chrome: ChromeConfig = field(default_factory=ChromeConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    screenshots: ScreenshotConfig = field(default_factory=ScreenshotConfig)
    store: StoreConfig = field(default_factory=StoreConfig)


# env var -> (section, key)
_ENV_OVERRIDES = {
    "CURUPIRA_CHROME_HOST": ("chrome", "host"),
    "CURUPIRA_CHROME_PORT": ("chrome", "port"),
    "CURUPIRA_COMMAND_TIMEOUT": ("chrome", "command_timeout"),
    "CURUPIRA_CONNECT_ON_START": ("chrome", "connect_on_start"),
    "CURUPIRA_LOG_LEVEL": ("logging", "level"),
    "CURUPIRA_SERVER_HOST": ("server", "host"),
    "CURUPIRA_SERVER_PORT": ("server", "port"),
    "CURUPIRA_SCREENSHOT_DIR": ("screenshots", "directory"),
    "CURUPIRA_MAX_EVENTS": ("store", "max_events"),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _find_config_file() -> Path | None:
    """Find curupira.toml in current or parent directories."""
    current = Path.cwd()

    for parent in [current] + list(current.parents):
        config_file = parent / CONFIG_FILENAME
        if config_file.exists():
            return config_file

    return None


def _load_file(path: Path | None) -> dict:
    if path is None or not path.exists():
        return {}

    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}", path=str(path))


def _coerce(section: str, key: str, value: Any, default: Any) -> Any:
    """Convert a raw value to the type of the field default."""
    name = f"{section}.{key}"
    try:
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(f"expected a boolean, got {value!r}")
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, list):
            if isinstance(value, str):
                return [item.strip() for item in value.split(",") if item.strip()]
            return list(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {name}: {e}", key=name)


def _apply(section_obj: Any, section: str, values: Mapping[str, Any]) -> None:
    known = {f.name: f for f in fields(section_obj)}
    for key, value in values.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key {section}.{key}")
            continue
        setattr(section_obj, key, _coerce(section, key, value, getattr(section_obj, key)))


def _validate(config: Config) -> None:
    if not 0 < config.chrome.port < 65536:
        raise ConfigError(f"Invalid value for chrome.port: {config.chrome.port}", key="chrome.port")
    if not 0 < config.server.port < 65536:
        raise ConfigError(f"Invalid value for server.port: {config.server.port}", key="server.port")
    if config.chrome.command_timeout <= 0:
        raise ConfigError("chrome.command_timeout must be positive", key="chrome.command_timeout")
    if config.store.max_events <= 0:
        raise ConfigError("store.max_events must be positive", key="store.max_events")
    if logging.getLevelName(config.logging.level.upper()) == f"Level {config.logging.level.upper()}":
        raise ConfigError(f"Unknown log level: {config.logging.level}", key="logging.level")


def load_config(path: Path | str | None = None, env: Mapping[str, str] | None = None) -> Config:
    """Build configuration from file and environment.

    Args:
        path: Explicit config file. Searched for when omitted.
        env: Environment mapping. Defaults to os.environ.

    Returns:
        Populated Config.

    Raises:
        ConfigError: On unreadable files or invalid values.
    """
    config_path = Path(path) if path is not None else _find_config_file()
    data = _load_file(config_path)
    env = os.environ if env is None else env

    config = Config()
    for section_name, values in data.items():
        section_obj = getattr(config, section_name, None)
        if section_obj is None or not isinstance(values, dict):
            logger.warning(f"Ignoring unknown config section [{section_name}]")
            continue
        _apply(section_obj, section_name, values)

    for var, (section_name, key) in _ENV_OVERRIDES.items():
        if var in env:
            _apply(getattr(config, section_name), section_name, {key: env[var]})

    _validate(config)
    if config_path:
        logger.debug(f"Loaded config from {config_path}")
    return config
