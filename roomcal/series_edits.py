"""Rule transformations behind "only this" / "this and following" edits.

The storage layer persists whatever these helpers return; nothing here talks
to a database. Occurrence ids follow the ``<seriesId>_<n>`` convention
produced by the recurrence expander.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .exceptions import SeriesEditError
from .models import (
    CalendarEvent,
    EndType,
    RecurrenceRule,
    RecurrenceValue,
    normalize_recurrence,
    to_date_key,
)
from .recurrence_expander import RecurrenceExpander
from .time_provider import FixedTimeProvider

logger = logging.getLogger(__name__)

_OCCURRENCE_SUFFIX = re.compile(r"^(?P<series>.+)_(?P<index>\d+)$")

DateLike = Union[date, datetime, str]


class RecurrenceEditMode(str, Enum):
    """Scope of an edit or delete applied to a recurring event."""

    SINGLE = "single"
    THIS_AND_FOLLOWING = "thisAndFollowing"
    ALL = "all"


def series_id(occurrence_id: str) -> str:
    """Return the stored event id behind an occurrence id.

    Only a trailing ``_<digits>`` suffix is stripped, so ids that contain
    underscores of their own survive intact.
    """
    match = _OCCURRENCE_SUFFIX.match(occurrence_id)
    return match.group("series") if match else occurrence_id


def occurrence_date_key(occurrence: CalendarEvent) -> str:
    """The ``yyyy-MM-dd`` key identifying an occurrence within its series."""
    return to_date_key(occurrence.start)


def _as_date(value: DateLike) -> date:
    return date.fromisoformat(to_date_key(value))


def _require_rule(event: CalendarEvent) -> RecurrenceRule:
    rule = event.rule
    if rule is None:
        raise SeriesEditError(f"event {event.id!r} does not repeat", field="recurrence")
    return rule


def _check_instance_date(event: CalendarEvent, instance_date: date) -> None:
    if instance_date < event.start.date():
        raise SeriesEditError(
            f"{instance_date.isoformat()} is before the start of series {event.id!r}",
            field="instance_date",
        )


def _check_is_occurrence(event: CalendarEvent, instance_date: date) -> None:
    """Raise unless the series (exceptions included) has an occurrence starting on ``instance_date``."""
    day_start = datetime.combine(instance_date, time.min, tzinfo=event.start.tzinfo)
    expander = RecurrenceExpander(time_provider=FixedTimeProvider(instance_date))
    occurrences = expander.expand(event, day_start, day_start + timedelta(days=1))
    if not any(occ.start.date() == instance_date for occ in occurrences):
        raise SeriesEditError(
            f"series {event.id!r} has no occurrence on {instance_date.isoformat()}",
            field="instance_date",
        )


def exclude_occurrence(rule: RecurrenceRule, instance_date: DateLike) -> RecurrenceRule:
    """Return a copy of ``rule`` that suppresses the occurrence on ``instance_date``."""
    key = to_date_key(instance_date)
    if key in rule.exceptions:
        return rule
    return rule.model_copy(update={"exceptions": tuple(sorted((*rule.exceptions, key)))})


def end_series_before(rule: RecurrenceRule, instance_date: DateLike) -> RecurrenceRule:
    """Return a copy of ``rule`` ending on the day before ``instance_date``."""
    day_before = _as_date(instance_date) - timedelta(days=1)
    return rule.model_copy(
        update={
            "end_type": EndType.DATE.value,
            "end_date": day_before,
            "occurrence_count": None,
        }
    )


def _shift_to(event: CalendarEvent, instance_date: date) -> tuple[datetime, datetime]:
    """Move the event's interval to ``instance_date`` keeping time of day and duration."""
    start = datetime.combine(instance_date, event.start.timetz())
    return start, start + (event.end - event.start)


def _apply_changes(
    event: CalendarEvent, changes: Optional[Mapping[str, Any]], **overrides: Any
) -> CalendarEvent:
    data = event.model_dump()
    data.update(overrides)
    if changes:
        data.update(changes)
    return CalendarEvent.model_validate(data)


def detach_occurrence(
    event: CalendarEvent,
    instance_date: DateLike,
    changes: Optional[Mapping[str, Any]] = None,
    new_id: str = "",
) -> tuple[CalendarEvent, CalendarEvent]:
    """Edit only one occurrence of a series.

    Returns:
        (series with the instance excluded, standalone non-recurring event)

    Raises:
        SeriesEditError: If the event does not repeat, the date precedes it, or
            the series has no occurrence on that date
    """
    rule = _require_rule(event)
    day = _as_date(instance_date)
    _check_instance_date(event, day)
    _check_is_occurrence(event, day)

    original = event.model_copy(update={"recurrence": exclude_occurrence(rule, day)})
    start, end = _shift_to(event, day)
    standalone = _apply_changes(
        event, changes, id=new_id or f"{event.id}-{day.isoformat()}", start=start, end=end, recurrence=None
    )
    logger.debug("Detached %s from series %s", day.isoformat(), event.id)
    return original, standalone


def split_series(
    event: CalendarEvent,
    instance_date: DateLike,
    changes: Optional[Mapping[str, Any]] = None,
    new_id: str = "",
) -> tuple[CalendarEvent, CalendarEvent]:
    """Edit an occurrence and every later one.

    The original series is ended the day before ``instance_date``; a new
    series with the same rule (and ``changes`` applied) starts on it.

    Returns:
        (truncated original series, new series)

    Raises:
        SeriesEditError: If the event does not repeat or the date precedes it
    """
    rule = _require_rule(event)
    day = _as_date(instance_date)
    _check_instance_date(event, day)

    original = event.model_copy(update={"recurrence": end_series_before(rule, day)})
    start, end = _shift_to(event, day)
    following = _apply_changes(
        event,
        changes,
        id=new_id or f"{event.id}-{day.isoformat()}",
        start=start,
        end=end,
        recurrence=rule.model_dump(),
    )
    logger.debug("Split series %s at %s", event.id, day.isoformat())
    return original, following


def delete_occurrences(
    event: CalendarEvent, mode: RecurrenceEditMode, instance_date: Optional[DateLike] = None
) -> Optional[CalendarEvent]:
    """Apply a delete in the given mode.

    Returns:
        The event to keep storing, or None when the whole series goes away
    """
    mode = RecurrenceEditMode(mode)
    if mode is RecurrenceEditMode.ALL or instance_date is None or not event.is_recurring:
        return None

    rule = _require_rule(event)
    day = _as_date(instance_date)
    _check_instance_date(event, day)
    if mode is RecurrenceEditMode.SINGLE:
        return event.model_copy(update={"recurrence": exclude_occurrence(rule, day)})
    return event.model_copy(update={"recurrence": end_series_before(rule, day)})


def cap_to_year_end(
    recurrence: RecurrenceValue, event_start: datetime, today: date
) -> Optional[RecurrenceRule]:
    """Apply the save-time year-end policy to a recurrence.

    Open-ended series are turned into date-ended ones finishing on Dec 31 of
    the later of the event's year and the current year; later end dates are
    pulled back to that day. Count-ended series are left alone.
    """
    rule = normalize_recurrence(recurrence)
    if rule is None:
        return None

    cap = date(max(event_start.year, today.year), 12, 31)
    if rule.end_type == EndType.NEVER.value:
        return rule.model_copy(update={"end_type": EndType.DATE.value, "end_date": cap})
    if rule.end_type == EndType.DATE.value and rule.end_date is not None and rule.end_date > cap:
        return rule.model_copy(update={"end_date": cap})
    return rule