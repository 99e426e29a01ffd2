"""noticecal.config_loader

Config loader for the noticecal command line.

- Reads YAML via PyYAML.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .recurrence_validation import DEFAULT_MAX_INSTANCES

logger = logging.getLogger(__name__)

MAX_INSTANCES_CEILING = 1000


@dataclass
class Config:
    """Typed configuration for noticecal.

    Fields:
        max_instances: cap on generated occurrences (1..1000)
        log_level: logging level name
        default_timezone: IANA zone applied to naive CLI input
        date_format: strftime format used when printing occurrences
    """

    max_instances: int = DEFAULT_MAX_INSTANCES
    log_level: str = "INFO"
    default_timezone: str = "UTC"
    date_format: str = "%Y-%m-%d %H:%M"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric values are coerced to int and max_instances is clamped to
        1..1000, logging a warning whenever a coercion happens.
        """
        if data is None:
            data = {}

        raw = data.get("max_instances", DEFAULT_MAX_INSTANCES)
        try:
            max_instances = int(raw)
        except (TypeError, ValueError):
            logger.warning(
                "Config max_instances=%r is not an int; using default %d", raw, DEFAULT_MAX_INSTANCES
            )
            max_instances = DEFAULT_MAX_INSTANCES
        if max_instances < 1:
            logger.warning("max_instances %d below minimum; coercing to 1", max_instances)
            max_instances = 1
        elif max_instances > MAX_INSTANCES_CEILING:
            logger.warning(
                "max_instances %d above maximum; coercing to %d", max_instances, MAX_INSTANCES_CEILING
            )
            max_instances = MAX_INSTANCES_CEILING

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        default_timezone = data.get("default_timezone") or "UTC"
        date_format = data.get("date_format") or "%Y-%m-%d %H:%M"

        return cls(
            max_instances=max_instances,
            log_level=log_level,
            default_timezone=str(default_timezone),
            date_format=str(date_format),
        )

    def with_overrides(self, overrides: dict[str, Any]) -> Config:
        """Return a new Config with ``overrides`` applied on top of this one."""
        merged = {
            "max_instances": self.max_instances,
            "log_level": self.log_level,
            "default_timezone": self.default_timezone,
            "date_format": self.date_format,
        }
        merged.update({k: v for k, v in overrides.items() if k in merged})
        return Config.from_dict(merged)


def load_config(path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to ./noticecal.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: returns Config() with defaults.
    - If file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / "noticecal.yaml"
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.debug("Config file %s not found; using defaults", p)
        return Config()

    try:
        loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Config file {p} is not valid YAML: {exc}") from exc
    # safe_load returns None for empty files
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
        raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
    cfg = Config.from_dict(loaded)
    logger.info("Loaded configuration from %s", p)
    logger.debug("Configuration values: %s", cfg)
    return cfg
