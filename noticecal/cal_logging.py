"""
Central logging configuration for noticecal.

Keeps recurrence engine diagnostics available at DEBUG while quieting
third-party libraries, and lets the environment override the level for
troubleshooting.
"""

import logging
import os
from typing import Optional

PACKAGE_LOGGERS = (
    "noticecal",
    "noticecal.recurrence_expander",
    "noticecal.recurrence_parser",
    "noticecal.recurrence_validation",
    "noticecal.datetime_utils",
    "noticecal.config_loader",
    "noticecal.config_manager",
)

THIRD_PARTY_LOGGERS = {
    "dateutil": logging.WARNING,
    "pydantic": logging.WARNING,
    "yaml": logging.WARNING,
}


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for noticecal.

    Args:
        debug_mode: Whether to enable debug logging for noticecal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        NOTICECAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        NOTICECAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("NOTICECAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("NOTICECAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    logger_config: dict[str, int] = dict(THIRD_PARTY_LOGGERS)
    package_level = logging.DEBUG if final_debug else logging.INFO
    for module in PACKAGE_LOGGERS:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.debug("Debug logging enabled for noticecal modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("noticecal", *THIRD_PARTY_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
