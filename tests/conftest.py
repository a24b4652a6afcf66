"""Shared fixtures for roomcal tests."""

from collections.abc import Callable, Generator
from datetime import date, datetime
from typing import Any

import pytest

from roomcal import time_provider as time_provider_module
from roomcal.models import CalendarEvent
from roomcal.recurrence_expander import RecurrenceExpander
from roomcal.time_provider import FixedTimeProvider


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "fast: tests that run in well under a second")


@pytest.fixture
def reference_today() -> date:
    """Fixed "today" for the year-end cap.

    The cap depends on the current year, so every expansion test pins it.
    """
    return date(2024, 6, 1)


@pytest.fixture
def expander(reference_today: date) -> RecurrenceExpander:
    """Expander with the reference date injected."""
    return RecurrenceExpander(time_provider=FixedTimeProvider(reference_today))


@pytest.fixture
def make_event() -> Callable[..., CalendarEvent]:
    """Factory for events with sensible defaults."""

    def _make(
        start: datetime,
        end: datetime,
        recurrence: Any = None,
        event_id: str = "ev",
        **extra: Any,
    ) -> CalendarEvent:
        return CalendarEvent(
            id=event_id,
            title=extra.pop("title", "Reunião de equipe"),
            start=start,
            end=end,
            recurrence=recurrence,
            calendar_id=extra.pop("calendar_id", "sala-1"),
            **extra,
        )

    return _make


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, Any, None]:
    """Ensure ROOMCAL_* variables and the global clock do not leak between tests."""
    for key in (
        "ROOMCAL_TEST_TIME",
        "ROOMCAL_DEBUG",
        "ROOMCAL_LOG_LEVEL",
        "ROOMCAL_DEFAULT_TIMEZONE",
        "ROOMCAL_WEEK_STARTS_ON",
        "ROOMCAL_AGENDA_DAYS",
        "ROOMCAL_MAX_INSTANCES",
    ):
        monkeypatch.delenv(key, raising=False)
    original_provider = time_provider_module.get_time_provider()
    yield
    time_provider_module.set_time_provider(original_provider)
