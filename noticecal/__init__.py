"""noticecal - recurrence engine for a calendar that schedules events from announcements.

Public API:
    expand(base_event, rule, max_instances=100) -> list[Occurrence]
    parse(text) -> RecurrenceRule | None
"""

__version__ = "0.1.0"

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

from .recurrence_exceptions import (
    RecurrenceError,
    RecurrenceExpansionError,
    RecurrenceValidationError,
)
from .recurrence_expander import (
    ExpanderConfig,
    expand,
    expansion_truncated,
    iter_occurrences,
    materialize_series,
)
from .recurrence_models import CalendarEvent, EndType, Frequency, Occurrence, RecurrenceRule
from .recurrence_parser import parse

__all__ = [
    "CalendarEvent",
    "EndType",
    "ExpanderConfig",
    "Frequency",
    "Occurrence",
    "RecurrenceError",
    "RecurrenceExpansionError",
    "RecurrenceRule",
    "RecurrenceValidationError",
    "expand",
    "expansion_truncated",
    "iter_occurrences",
    "materialize_series",
    "parse",
]


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors the NOTICECAL_DEBUG environment variable (truthy values: "1",
    "true", "yes", "on"), which forces DEBUG verbosity.
    """
    debug_env = os.environ.get("NOTICECAL_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message, with only the level colorized.
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )
