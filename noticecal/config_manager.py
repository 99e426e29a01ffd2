"""Environment-driven configuration for the noticecal command line."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "NOTICECAL_"


class ConfigManager:
    """Manages configuration overrides from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug(
                "Failed to read .env file for defaults (continuing): %s",
                str(self.env_file_path),
                exc_info=True,
            )
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration overrides from environment variables.

        Recognizes:
        - NOTICECAL_MAX_INSTANCES -> 'max_instances' (int)
        - NOTICECAL_LOG_LEVEL -> 'log_level'
        - NOTICECAL_DEFAULT_TIMEZONE -> 'default_timezone'
        - NOTICECAL_CONFIG -> 'config_path'

        Returns:
            Mapping suitable for Config.from_dict overrides
        """
        cfg: dict[str, Any] = {}

        max_instances = os.environ.get("NOTICECAL_MAX_INSTANCES")
        if max_instances:
            try:
                cfg["max_instances"] = int(max_instances)
            except ValueError:
                logger.warning("Invalid NOTICECAL_MAX_INSTANCES=%r; ignoring", max_instances)

        log_level = os.environ.get("NOTICECAL_LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level.upper()

        default_tz = os.environ.get("NOTICECAL_DEFAULT_TIMEZONE")
        if default_tz:
            cfg["default_timezone"] = default_tz

        config_path = os.environ.get("NOTICECAL_CONFIG")
        if config_path:
            cfg["config_path"] = config_path

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment.

        Returns:
            Configuration dictionary
        """
        self.load_env_file()
        return self.build_config_from_env()


def get_default_timezone(fallback: str = "UTC") -> str:
    """Get default timezone from environment with validation.

    Args:
        fallback: Fallback timezone if not configured or invalid

    Returns:
        Valid IANA timezone string
    """
    import zoneinfo

    timezone = os.environ.get("NOTICECAL_DEFAULT_TIMEZONE", fallback)

    try:
        zoneinfo.ZoneInfo(timezone)
        return timezone
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to %r", timezone, fallback)
        return fallback


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and dataclass-like objects.

    Args:
        config: Configuration object (dict or object with attributes)
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
