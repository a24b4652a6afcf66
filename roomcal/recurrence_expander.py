"""Recurrence expansion for room bookings.

Turns one stored event plus its recurrence rule into the concrete occurrences
that fall inside a display window. Expansion is a pure function of the event,
the window and the reference "today" used for the year-end cap; every call
recomputes the whole sequence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from .exceptions import RecurrenceRuleError
from .models import CalendarEvent, EndType, Frequency, Occurrence, RecurrenceRule, to_date_key
from .time_provider import FixedTimeProvider, TimeProvider, get_time_provider

logger = logging.getLogger(__name__)

# Hard cap on generated candidates per series, independent of the end condition
MAX_INSTANCES = 365

_STEP_UNITS: dict[str, str] = {
    Frequency.DAILY.value: "days",
    Frequency.WEEKLY.value: "weeks",
    Frequency.MONTHLY.value: "months",
    Frequency.YEARLY.value: "years",
}


@dataclass
class ExpanderConfig:
    """Configuration for recurrence expansion."""

    max_instances: int = MAX_INSTANCES

    @classmethod
    def from_settings(cls, settings: Any) -> "ExpanderConfig":
        """Extract expansion configuration from a settings object or dict.

        Args:
            settings: Configuration object with expansion settings

        Returns:
            ExpanderConfig with values from settings or defaults
        """
        if isinstance(settings, dict):
            return cls(max_instances=settings.get("max_instances", MAX_INSTANCES))
        return cls(max_instances=getattr(settings, "max_instances", MAX_INSTANCES))


def validate_rule(rule: RecurrenceRule) -> None:
    """Check that a rule can be expanded.

    Raises:
        RecurrenceRuleError: Describing the first problem found
    """
    if rule.frequency not in _STEP_UNITS:
        raise RecurrenceRuleError(f"unknown frequency {rule.frequency!r}", field="frequency")
    if rule.interval < 1:
        raise RecurrenceRuleError(f"interval must be positive, got {rule.interval}", field="interval")
    if rule.end_type not in {member.value for member in EndType}:
        raise RecurrenceRuleError(f"unknown end type {rule.end_type!r}", field="end_type")
    if rule.end_type == EndType.COUNT.value and (
        rule.occurrence_count is None or rule.occurrence_count < 1
    ):
        raise RecurrenceRuleError(
            f"count-ended series needs a positive occurrence count, got {rule.occurrence_count}",
            field="occurrence_count",
        )
    if rule.end_type == EndType.DATE.value and rule.end_date is None:
        raise RecurrenceRuleError("date-ended series needs an end date", field="end_date")
    if rule.days_of_week and any(not 0 <= day <= 6 for day in rule.days_of_week):
        raise RecurrenceRuleError(
            f"weekday indices must be 0..6, got {list(rule.days_of_week)}", field="days_of_week"
        )


def year_end_cap(event_start: datetime, today: date) -> datetime:
    """Last instant a series may start: Dec 31 of the event's year or this year, whichever is later."""
    cap_year = max(event_start.year, today.year)
    return event_start.replace(
        year=cap_year, month=12, day=31, hour=23, minute=59, second=59, microsecond=0
    )


def overlaps_window(
    start: datetime, end: datetime, range_start: datetime, range_end: datetime
) -> bool:
    """Half-open overlap test against ``[range_start, range_end)``."""
    return start < range_end and end > range_start


def _js_weekday(dt: datetime) -> int:
    """Weekday index with 0=Sunday..6=Saturday."""
    return (dt.weekday() + 1) % 7


class RecurrenceExpander:
    """Expands stored events into the occurrences visible in a window."""

    def __init__(
        self,
        config: Optional[ExpanderConfig] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        """Initialize the expander.

        Args:
            config: Expansion limits (defaults to ExpanderConfig())
            time_provider: Source of "today" for the year-end cap; defaults to the
                process-wide provider at call time
        """
        self.config = config or ExpanderConfig()
        self._time_provider = time_provider

    @property
    def time_provider(self) -> TimeProvider:
        return self._time_provider or get_time_provider()

    def expand(
        self, event: CalendarEvent, range_start: datetime, range_end: datetime
    ) -> list[Occurrence]:
        """Expand an event into occurrences overlapping ``[range_start, range_end)``.

        Malformed rules produce an empty list and a warning instead of raising,
        so one bad series never breaks the rest of a view.

        Returns:
            Occurrences ordered by start time
        """
        if range_end <= range_start:
            return []

        rule = event.rule
        if rule is None:
            if overlaps_window(event.start, event.end, range_start, range_end):
                return [Occurrence.from_event(event)]
            return []

        try:
            validate_rule(rule)
        except RecurrenceRuleError as e:
            logger.warning("Skipping malformed recurrence on event %s: %s", event.id, e.message)
            return []

        year_end = year_end_cap(event.start, self.time_provider.today())
        if rule.uses_weekdays:
            instances = self._expand_weekdays(event, rule, range_start, range_end, year_end)
        else:
            instances = self._expand_interval(event, rule, range_start, range_end, year_end)

        logger.debug(
            "Expanded event %s (%s every %d) into %d occurrences for %s..%s",
            event.id,
            rule.frequency,
            rule.interval,
            len(instances),
            range_start.isoformat(),
            range_end.isoformat(),
        )
        return instances

    def _series_ended(
        self, candidate_start: datetime, rule: RecurrenceRule, count: int, year_end: datetime
    ) -> bool:
        """Apply the termination caps in order: candidate cap, year end, end date, count."""
        if count >= self.config.max_instances:
            logger.debug("Series reached the %d candidate cap", self.config.max_instances)
            return True
        if candidate_start > year_end:
            return True
        if rule.end_type == EndType.DATE.value and rule.end_date is not None:
            if candidate_start.date() > rule.end_date:
                return True
        return rule.end_type == EndType.COUNT.value and count >= (rule.occurrence_count or 0)

    def _expand_interval(
        self,
        event: CalendarEvent,
        rule: RecurrenceRule,
        range_start: datetime,
        range_end: datetime,
        year_end: datetime,
    ) -> list[Occurrence]:
        unit = _STEP_UNITS[rule.frequency]
        duration = event.end - event.start
        exceptions = frozenset(rule.exceptions)
        instances: list[Occurrence] = []

        count = 0
        while True:
            # Offsets are taken from the original start so month/year steps
            # clamp to short months without losing the original day.
            offset = relativedelta(**{unit: rule.interval * count})
            current_start = event.start + offset
            current_end = event.end + offset
            if current_end <= current_start:
                current_end = current_start + duration

            if self._series_ended(current_start, rule, count, year_end):
                break
            if current_start > range_end:
                break

            if to_date_key(current_start) not in exceptions and overlaps_window(
                current_start, current_end, range_start, range_end
            ):
                instances.append(Occurrence.from_event(event, current_start, current_end, count))
            count += 1

        return instances

    def _expand_weekdays(
        self,
        event: CalendarEvent,
        rule: RecurrenceRule,
        range_start: datetime,
        range_end: datetime,
        year_end: datetime,
    ) -> list[Occurrence]:
        duration = event.end - event.start
        exceptions = frozenset(rule.exceptions)
        weekdays = sorted(set(rule.days_of_week or ()))
        first_day = event.start.date()
        counted = rule.end_type == EndType.COUNT.value
        instances: list[Occurrence] = []

        count = 0
        week = 0
        while True:
            cursor = event.start + relativedelta(weeks=rule.interval * week)
            cursor_weekday = _js_weekday(cursor)
            for weekday in weekdays:
                instance_start = cursor + timedelta(days=weekday - cursor_weekday)
                if instance_start.date() < first_day:
                    continue

                if self._series_ended(instance_start, rule, count, year_end):
                    return instances

                instance_end = instance_start + duration
                if to_date_key(instance_start) not in exceptions and overlaps_window(
                    instance_start, instance_end, range_start, range_end
                ):
                    instances.append(Occurrence.from_event(event, instance_start, instance_end, count))
                count += 1

            week += 1
            next_cursor = event.start + relativedelta(weeks=rule.interval * week)
            next_week_start = next_cursor.replace(
                hour=0, minute=0, second=0, microsecond=0
            ) - timedelta(days=_js_weekday(next_cursor))
            if next_week_start >= range_end and not counted:
                break

        return instances


def expand_event(
    event: CalendarEvent,
    range_start: datetime,
    range_end: datetime,
    *,
    today: Optional[date] = None,
) -> list[Occurrence]:
    """Expand a single event (convenience wrapper).

    Args:
        event: Stored event, recurring or not
        range_start: Inclusive window start
        range_end: Exclusive window end
        today: Reference date for the year-end cap (defaults to the configured clock)
    """
    provider = FixedTimeProvider(today) if today is not None else None
    return RecurrenceExpander(time_provider=provider).expand(event, range_start, range_end)
