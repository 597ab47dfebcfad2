"""
YAML settings loader.

Loads settings.yml with:
- Environment variable substitution
- Validation of parser constants
- Defaults for every omitted value
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import structlog
import yaml

from notice_keydates.core.date_parser import DEADLINE_KEYWORDS, ROLLOVER_DAYS, ParserOptions
from notice_keydates.core.key_dates import DEFAULT_LABEL
from notice_keydates.storage.calendar_store import DEFAULT_EVENT_TITLE, STORAGE_KEY

logger = structlog.get_logger(__name__)


class ConfigError(ValueError):
    """Raised when a settings value is malformed."""


def substitute_env_vars(text: str) -> str:
    """
    Substitute environment variables in text.

    Supports formats:
    - ${VAR_NAME} - empty string (with a warning) if missing
    - ${VAR_NAME:-default} - optional with default
    """
    def replace(match):
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default = var_expr.split(":-", 1)
            return os.getenv(var_name, default)
        value = os.getenv(var_expr)
        if value is None:
            logger.warning("env_var_not_set", var=var_expr)
            return ""
        return value

    return re.sub(r"\$\{([^}]+)\}", replace, text)


def parse_clock(value, field_name: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""
    match = re.fullmatch(r"\s*(\d{1,2}):(\d{2})\s*", str(value))
    if not match:
        raise ConfigError(f"{field_name} must be HH:MM, got {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConfigError(f"{field_name} out of range: {value!r}")
    return hour, minute


@dataclass
class Settings:
    """Resolved package settings."""
    storage_key: str = STORAGE_KEY
    storage_dir: str = ".notice_keydates"
    rollover_days: int = ROLLOVER_DAYS
    deadline_keywords: tuple[str, ...] = DEADLINE_KEYWORDS
    deadline_default_time: tuple[int, int] = (23, 59)
    default_time: tuple[int, int] = (9, 0)
    default_key_date_label: str = DEFAULT_LABEL
    default_event_title: str = DEFAULT_EVENT_TITLE

    def parser_options(self) -> ParserOptions:
        return ParserOptions(
            rollover_days=self.rollover_days,
            deadline_keywords=self.deadline_keywords,
            deadline_time=self.deadline_default_time,
            default_time=self.default_time,
        )


class ConfigLoader:
    """
    Settings loader.

    Loads YAML config files and validates them into Settings.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_dir: Directory containing config files
                       (defaults to package config directory)
        """
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(__file__).parent

    def load_file(self, filename: str) -> dict:
        """
        Load YAML config file.

        Args:
            filename: Config file name (relative to config_dir)

        Returns:
            Parsed config dict
        """
        filepath = self.config_dir / filename

        if not filepath.exists():
            raise FileNotFoundError(f"Config file not found: {filepath}")

        logger.debug("loading_config", file=str(filepath))

        with open(filepath, "r", encoding="utf-8") as f:
            content = f.read()

        content = substitute_env_vars(content)
        config = yaml.safe_load(content)

        if config is not None and not isinstance(config, dict):
            raise ConfigError(f"{filepath} must contain a mapping")
        return config or {}

    def load_settings(self, filename: str = "settings.yml") -> Settings:
        """
        Load settings from YAML.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigError: If a value is malformed
        """
        return self._parse_settings(self.load_file(filename))

    @staticmethod
    def _section(data: dict, name: str) -> dict:
        section = data.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise ConfigError(f"{name} must be a mapping, got {type(section).__name__}")
        return section

    def _parse_settings(self, data: dict) -> Settings:
        defaults = Settings()
        storage = self._section(data, "storage")
        parser = self._section(data, "parser")
        labels = self._section(data, "labels")

        rollover_days = parser.get("rollover_days", defaults.rollover_days)
        if not isinstance(rollover_days, int) or isinstance(rollover_days, bool) or rollover_days < 0:
            raise ConfigError(f"parser.rollover_days must be a non-negative integer, got {rollover_days!r}")

        keywords = parser.get("deadline_keywords", list(defaults.deadline_keywords))
        if not isinstance(keywords, list) or not all(isinstance(k, str) and k for k in keywords):
            raise ConfigError("parser.deadline_keywords must be a list of non-empty strings")

        deadline_time = defaults.deadline_default_time
        if "deadline_default_time" in parser:
            deadline_time = parse_clock(parser["deadline_default_time"], "parser.deadline_default_time")

        default_time = defaults.default_time
        if "default_time" in parser:
            default_time = parse_clock(parser["default_time"], "parser.default_time")

        return Settings(
            storage_key=str(storage.get("key") or defaults.storage_key),
            storage_dir=str(storage.get("dir") or defaults.storage_dir),
            rollover_days=rollover_days,
            deadline_keywords=tuple(keywords),
            deadline_default_time=deadline_time,
            default_time=default_time,
            default_key_date_label=str(labels.get("key_date") or defaults.default_key_date_label),
            default_event_title=str(labels.get("event_title") or defaults.default_event_title),
        )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Convenience function to load settings.

    Args:
        config_path: Optional path to a settings YAML file

    Returns:
        Settings object
    """
    if config_path:
        loader = ConfigLoader(str(Path(config_path).parent))
        return loader.load_settings(Path(config_path).name)
    return ConfigLoader().load_settings()
