"""Shared fixtures for the noticecal test suite."""

import logging
import os
from collections.abc import Iterator
from datetime import datetime
from typing import Any

import pytest

from noticecal.recurrence_models import CalendarEvent

NOTICECAL_ENV_KEYS = (
    "NOTICECAL_MAX_INSTANCES",
    "NOTICECAL_LOG_LEVEL",
    "NOTICECAL_DEFAULT_TIMEZONE",
    "NOTICECAL_CONFIG",
    "NOTICECAL_DEBUG",
)


def pytest_configure(config: Any) -> None:
    """Configure pytest with project markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests that run in well under a second")
    config.addinivalue_line("markers", "smoke: Basic smoke tests")


@pytest.fixture
def clean_env() -> Iterator[None]:
    """Clear NOTICECAL_* variables for the test and restore them afterwards."""
    original = {key: os.environ.get(key) for key in NOTICECAL_ENV_KEYS}
    for key in NOTICECAL_ENV_KEYS:
        os.environ.pop(key, None)
    try:
        yield
    finally:
        for key, value in original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


@pytest.fixture
def restore_log_levels() -> Iterator[None]:
    """Put logger levels touched by logging setup back after the test."""
    names = ["", "noticecal", "dateutil", "pydantic", "yaml"]
    saved = {name: logging.getLogger(name).level for name in names}
    try:
        yield
    finally:
        for name, level in saved.items():
            logging.getLogger(name).setLevel(level)


@pytest.fixture
def isolated_cwd(tmp_path: Any, monkeypatch: pytest.MonkeyPatch, clean_env: None) -> Any:
    """Run in an empty directory so no stray noticecal.yaml or .env is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def monday_event() -> dict[str, datetime]:
    """One-hour naive event on Monday 2024-03-04 at 14:00."""
    return {
        "start_time": datetime(2024, 3, 4, 14, 0),
        "end_time": datetime(2024, 3, 4, 15, 0),
    }


@pytest.fixture
def calendar_event() -> CalendarEvent:
    """A stored event as the announcement import pipeline produces it."""
    return CalendarEvent(
        id="evt-1",
        title="Reading group",
        start_time=datetime(2024, 3, 4, 9, 0),
        end_time=datetime(2024, 3, 4, 10, 30),
        location="Room 204",
        original_text="读书会每周一上午9点，持续3周",
        tag_ids=["study"],
    )
