"""Configuration management for the roomcal scheduling core."""

from __future__ import annotations

import logging
import os
import zoneinfo
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .logging_config import configure_logging
from .recurrence_expander import ExpanderConfig
from .time_provider import DEFAULT_TIMEZONE, TimeProvider, set_time_provider

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")


class RoomCalSettings(BaseModel):
    """Validated settings shared by the expander and the view helpers."""

    default_timezone: str = Field(default=DEFAULT_TIMEZONE, description="IANA timezone of the rooms")
    week_starts_on: int = Field(default=0, ge=0, le=6, description="0=Sunday..6=Saturday")
    agenda_days: int = Field(default=30, ge=1, description="Length of the agenda view in days")
    max_instances: int = Field(default=365, ge=1, description="Candidate cap per series")
    debug: bool = Field(default=False, description="Enable debug logging")

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            zoneinfo.ZoneInfo(value)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    def expander_config(self) -> ExpanderConfig:
        """Build the recurrence expander configuration."""
        return ExpanderConfig(max_instances=self.max_instances)

    def time_provider(self) -> TimeProvider:
        """Build a time provider for the configured timezone."""
        return TimeProvider(self.default_timezone)


class ConfigManager:
    """Manages configuration from a YAML file, environment variables and .env files."""

    ENV_KEYS: dict[str, str] = {
        "ROOMCAL_DEFAULT_TIMEZONE": "default_timezone",
        "ROOMCAL_WEEK_STARTS_ON": "week_starts_on",
        "ROOMCAL_AGENDA_DAYS": "agenda_days",
        "ROOMCAL_MAX_INSTANCES": "max_instances",
        "ROOMCAL_DEBUG": "debug",
    }

    def __init__(self, env_file_path: Path | None = None, config_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
            config_file_path: Optional path to a YAML settings file
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.config_file_path = config_file_path

    def load_env_file(self) -> list[str]:
        """Export ROOMCAL_* defaults from the .env file.

        A deployment can keep its room timezone and view defaults next to the
        app; variables already present in the process environment win. Lines
        may carry a leading ``export``.

        Returns:
            Keys exported from the file, in file order
        """
        path = self.env_file_path
        if not path.exists():
            logger.debug("No .env file at %s", path)
            return []

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Could not read %s, skipping .env defaults: %s", path, e)
            return []

        exported: list[str] = []
        for raw_line in content.splitlines():
            line = raw_line.strip()
            if line.startswith("export "):
                line = line[len("export ") :].lstrip()
            key, sep, value = line.partition("=")
            key = key.strip()
            if not sep or not key or key.startswith("#"):
                continue
            if key in os.environ:
                logger.debug("Keeping %s from the environment over %s", key, path)
                continue
            os.environ[key] = value.strip().strip("\"'")
            exported.append(key)

        if exported:
            logger.debug("Exported .env defaults from %s: %s", path, ", ".join(exported))
        return exported

    def load_yaml_file(self) -> dict[str, Any]:
        """Load settings from the YAML file, if one is configured.

        Raises:
            ConfigError: If the file exists but is not a YAML mapping
        """
        path = self.config_file_path
        if path is None or not path.exists():
            return {}

        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping at the top of {path}, got {type(data).__name__}")
        logger.debug("Loaded settings from %s: %s", path, ", ".join(sorted(data)))
        return data

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from ROOMCAL_* environment variables."""
        cfg: dict[str, Any] = {}
        for env_key, setting in self.ENV_KEYS.items():
            raw = os.environ.get(env_key)
            if raw is None or raw.strip() == "":
                continue
            raw = raw.strip()
            if setting == "debug":
                cfg[setting] = raw.lower() in _TRUTHY
            elif setting == "default_timezone":
                cfg[setting] = raw
            else:
                try:
                    cfg[setting] = int(raw)
                except ValueError:
                    logger.warning("Invalid %s=%r; ignoring", env_key, raw)
        return cfg

    def load_settings(self) -> RoomCalSettings:
        """Load .env defaults, the YAML file and the environment into settings.

        Environment variables win over the YAML file. Values that fail
        validation are logged and replaced by their defaults.
        """
        self.load_env_file()
        merged = {**self.load_yaml_file(), **self.build_config_from_env()}
        known = set(RoomCalSettings.model_fields)
        unknown = sorted(set(merged) - known)
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))
        merged = {key: value for key, value in merged.items() if key in known}

        try:
            return RoomCalSettings(**merged)
        except ValidationError as e:
            invalid = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            for key in sorted(invalid):
                logger.warning("Invalid setting %s=%r; using default", key, merged.get(key))
            return RoomCalSettings(**{k: v for k, v in merged.items() if k not in invalid})


def bootstrap(config_file_path: Path | None = None, env_file_path: Path | None = None) -> RoomCalSettings:
    """Load settings, configure logging and install the configured clock.

    This is the entry point host applications call once at startup.
    """
    settings = ConfigManager(env_file_path, config_file_path).load_settings()
    configure_logging(debug_mode=settings.debug)
    set_time_provider(settings.time_provider())
    logger.info(
        "roomcal configured: timezone=%s week_starts_on=%d max_instances=%d",
        settings.default_timezone,
        settings.week_starts_on,
        settings.max_instances,
    )
    return settings
