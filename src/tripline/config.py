"""Central configuration for tripline.

Configuration priority (highest wins):

1. Environment variables (``TRIPLINE_*``, nested with ``__``)
2. YAML config file
3. In-code defaults

Example:
    >>> from tripline.config import get_config
    >>> cfg = get_config()
    >>> cfg.transport.default_mode
    <TransportMode.DRIVE: 'drive'>

Config File Format (YAML):
    ```yaml
    timeline:
      default_order_index: 999
      include_undated: false

    transport:
      default_mode: drive      # walk | bike | drive | train | fly | boat
      request_delay_seconds: 0.1
      followup_delay_seconds: 0.05
      max_passes: 5

    debug: false
    verbose: false
    log_file: ~/.tripline/tripline.log
    ```
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tripline.core.models import DEFAULT_ORDER_INDEX, TransportMode

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigFileError(ConfigError):
    """Raised when an explicitly requested config file cannot be used."""


# =============================================================================
# Sections
# =============================================================================


class TimelineConfig(BaseModel):
    """Timeline grouping settings.

    Attributes:
        default_order_index: Sort position for items without an order index.
        include_undated: Place items without a start time in the undated
            bucket instead of leaving them out of the timeline.
    """

    default_order_index: int = Field(default=DEFAULT_ORDER_INDEX)
    include_undated: bool = Field(default=False)


class TransportConfig(BaseModel):
    """Route resolution settings.

    Attributes:
        default_mode: Mode used when resolving segments automatically.
        request_delay_seconds: Pause between consecutive routing requests.
        followup_delay_seconds: Pause before a follow-up resolution pass.
        max_passes: Upper bound on passes per scheduled resolution.
    """

    default_mode: TransportMode = Field(default=TransportMode.DRIVE)
    request_delay_seconds: float = Field(default=0.1, ge=0.0)
    followup_delay_seconds: float = Field(default=0.05, ge=0.0)
    max_passes: int = Field(default=5, ge=1)

    @field_validator("default_mode", mode="before")
    @classmethod
    def _lower_mode(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Attributes:
        timeline: Grouping and ordering settings.
        transport: Route resolution settings.
        debug: Enable debug logging.
        verbose: Enable verbose console output.
        log_file: Optional log file path.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRIPLINE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    timeline: TimelineConfig = Field(default_factory=TimelineConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")
    verbose: bool = Field(default=False, description="Enable verbose output.")
    log_file: Path | None = Field(default=None, description="Optional log file.")

    @field_validator("log_file", mode="before")
    @classmethod
    def _expand_log_file(cls, v: Any) -> Any:
        if isinstance(v, str) and v:
            return Path(v).expanduser()
        return v

    @property
    def log_level(self) -> str:
        """Effective log level derived from the debug/verbose flags."""
        if self.debug:
            return "DEBUG"
        if self.verbose:
            return "INFO"
        return "WARNING"


# =============================================================================
# Loading
# =============================================================================


def _default_search_paths() -> list[Path]:
    return [
        Path("./tripline.yaml"),
        Path("./tripline.yml"),
        Path.home() / ".tripline" / "config.yaml",
    ]


def _read_yaml(config_file: Path) -> dict[str, Any]:
    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to read config file {config_file}: {e}. Using defaults.")
        return {}

    if not content.strip():
        return {}

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        return {}

    if not isinstance(loaded, dict):
        logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        return {}
    return loaded


def _env_keys() -> set[str]:
    return {key.upper() for key in os.environ if key.upper().startswith("TRIPLINE_")}


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, defaults and environment are used. A malformed
    file logs a warning and is ignored.

    Args:
        path: Optional path to a YAML config file. If None, default
            locations are searched.

    Returns:
        Fully-populated AppConfig instance.

    Raises:
        ConfigFileError: If ``path`` is given but does not exist.
    """
    if path is not None and not path.exists():
        raise ConfigFileError(f"Config file not found: {path}")

    candidates = [path] if path is not None else _default_search_paths()
    config_file = next((p for p in candidates if p is not None and p.exists()), None)

    file_data: dict[str, Any] = {}
    if config_file is not None:
        logger.debug(f"Loading config from {config_file}")
        file_data = _read_yaml(config_file)

    # Environment wins over the file, so only take file values the
    # environment does not set.
    env_config = AppConfig()
    env_keys = _env_keys()
    merged: dict[str, Any] = env_config.model_dump()
    for section in ("timeline", "transport"):
        section_data = file_data.get(section)
        if not isinstance(section_data, dict):
            continue
        for key, value in section_data.items():
            if f"TRIPLINE_{section}__{key}".upper() not in env_keys:
                merged[section][key] = value
    for key in ("debug", "verbose", "log_file"):
        if key in file_data and f"TRIPLINE_{key}".upper() not in env_keys:
            merged[key] = file_data[key]

    try:
        return AppConfig.model_validate(merged)
    except ValueError as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return env_config


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton."""
    return load_config()


def reset_config() -> None:
    """Clear the configuration cache (used by tests)."""
    get_config.cache_clear()
