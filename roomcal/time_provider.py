"""Reference clock for the recurrence year-end cap."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

# Timezone of the institution the rooms belong to
DEFAULT_TIMEZONE = "America/Sao_Paulo"

TEST_TIME_ENV = "ROOMCAL_TEST_TIME"


class TimeProvider:
    """Provides the current time with test time override support."""

    def __init__(self, timezone_name: str = DEFAULT_TIMEZONE):
        """Initialize time provider.

        Args:
            timezone_name: IANA timezone used to decide what "today" is
        """
        try:
            self.timezone = zoneinfo.ZoneInfo(timezone_name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown timezone %r, falling back to %s", timezone_name, DEFAULT_TIMEZONE
            )
            self.timezone = zoneinfo.ZoneInfo(DEFAULT_TIMEZONE)

    def now(self) -> datetime.datetime:
        """Return the current time in the configured timezone.

        Can be overridden for testing via the ROOMCAL_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2024-06-01T10:00:00-03:00").
        A naive value is interpreted in the configured timezone.
        """
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is None:
                    return dt.replace(tzinfo=self.timezone)
                return dt.astimezone(self.timezone)
            except ValueError as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)

        return datetime.datetime.now(self.timezone)

    def today(self) -> datetime.date:
        """Return today's date in the configured timezone."""
        return self.now().date()


class FixedTimeProvider(TimeProvider):
    """Time provider pinned to a fixed instant, used for reproducible expansion."""

    def __init__(self, fixed: datetime.datetime | datetime.date, timezone_name: str = DEFAULT_TIMEZONE):
        super().__init__(timezone_name)
        if not isinstance(fixed, datetime.datetime):
            fixed = datetime.datetime.combine(fixed, datetime.time(12, 0))
        if fixed.tzinfo is None:
            fixed = fixed.replace(tzinfo=self.timezone)
        self._fixed = fixed

    def now(self) -> datetime.datetime:
        """Return the pinned instant."""
        return self._fixed


_time_provider = TimeProvider()


def get_time_provider() -> TimeProvider:
    """Return the process-wide time provider."""
    return _time_provider


def set_time_provider(provider: TimeProvider) -> None:
    """Replace the process-wide time provider (e.g. after loading settings)."""
    global _time_provider  # noqa: PLW0603
    _time_provider = provider
