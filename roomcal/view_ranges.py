"""Display windows for the calendar views and per-day grouping of occurrences."""

from __future__ import annotations

import logging
import zoneinfo
from collections import defaultdict
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from .config_manager import RoomCalSettings
from .event_layout import EventLayout, compute_event_layout
from .models import CalendarEvent, Occurrence
from .recurrence_expander import RecurrenceExpander

logger = logging.getLogger(__name__)

SUNDAY = 0
DEFAULT_AGENDA_DAYS = 30
N_DAY_COUNT = 4


class ViewType(str, Enum):
    """Calendar views offered by the booking UI."""

    DAY = "day"
    FOUR_DAY = "4day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    AGENDA = "agenda"


def start_of_week(day: date, week_starts_on: int = SUNDAY) -> date:
    """First day of the week containing ``day`` (0=Sunday..6=Saturday)."""
    js_weekday = (day.weekday() + 1) % 7
    return day - timedelta(days=(js_weekday - week_starts_on) % 7)


def _days_between(first: date, last: date) -> list[date]:
    return [first + timedelta(days=offset) for offset in range((last - first).days + 1)]


def view_days(
    view: ViewType,
    current: date,
    week_starts_on: int = SUNDAY,
    agenda_days: int = DEFAULT_AGENDA_DAYS,
) -> list[date]:
    """Days displayed by ``view`` around ``current``.

    The month view covers whole weeks, so it usually includes trailing days
    of the previous month and leading days of the next one.
    """
    view = ViewType(view)
    if isinstance(current, datetime):
        current = current.date()

    if view is ViewType.DAY:
        return [current]
    if view is ViewType.FOUR_DAY:
        return _days_between(current, current + timedelta(days=N_DAY_COUNT - 1))
    if view is ViewType.WEEK:
        first = start_of_week(current, week_starts_on)
        return _days_between(first, first + timedelta(days=6))
    if view is ViewType.MONTH:
        month_start = current.replace(day=1)
        month_end = month_start + relativedelta(months=1, days=-1)
        first = start_of_week(month_start, week_starts_on)
        last = start_of_week(month_end, week_starts_on) + timedelta(days=6)
        return _days_between(first, last)
    if view is ViewType.YEAR:
        return _days_between(date(current.year, 1, 1), date(current.year, 12, 31))
    return _days_between(current, current + timedelta(days=agenda_days - 1))


def view_range(
    view: ViewType,
    current: date,
    tz: Optional[tzinfo] = None,
    week_starts_on: int = SUNDAY,
    agenda_days: int = DEFAULT_AGENDA_DAYS,
) -> tuple[datetime, datetime]:
    """Half-open window ``[first day 00:00, day after last day 00:00)`` for a view."""
    days = view_days(view, current, week_starts_on=week_starts_on, agenda_days=agenda_days)
    start = datetime.combine(days[0], time.min, tzinfo=tz)
    end = datetime.combine(days[-1] + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def shift_view_date(
    view: ViewType, current: date, steps: int = 1, agenda_days: int = DEFAULT_AGENDA_DAYS
) -> date:
    """Move ``current`` by ``steps`` pages of ``view`` (negative steps go back)."""
    view = ViewType(view)
    if view is ViewType.MONTH:
        return current + relativedelta(months=steps)
    if view is ViewType.YEAR:
        return current + relativedelta(years=steps)
    page_days = {
        ViewType.DAY: 1,
        ViewType.FOUR_DAY: N_DAY_COUNT,
        ViewType.WEEK: 7,
        ViewType.AGENDA: agenda_days,
    }[view]
    return current + timedelta(days=page_days * steps)


def localize_event(event: CalendarEvent, tz: tzinfo) -> CalendarEvent:
    """Read a naive event as wall-clock time in ``tz``; aware events are returned as-is."""
    if event.start.tzinfo is not None and event.end.tzinfo is not None:
        return event
    return event.model_copy(
        update={
            "start": event.start if event.start.tzinfo else event.start.replace(tzinfo=tz),
            "end": event.end if event.end.tzinfo else event.end.replace(tzinfo=tz),
        }
    )


def expand_events(
    events: Iterable[CalendarEvent],
    range_start: datetime,
    range_end: datetime,
    expander: Optional[RecurrenceExpander] = None,
    tz: Optional[tzinfo] = None,
) -> list[Occurrence]:
    """Expand every event into the window and merge the results by start time.

    With ``tz`` given, naive events are localized to it first so they can be
    compared with an aware window.
    """
    expander = expander or RecurrenceExpander()
    occurrences: list[Occurrence] = []
    for event in events:
        if tz is not None:
            event = localize_event(event, tz)
        occurrences.extend(expander.expand(event, range_start, range_end))
    occurrences.sort(key=lambda occ: (occ.start, occ.id))
    logger.debug(
        "Window %s..%s holds %d occurrences",
        range_start.isoformat(),
        range_end.isoformat(),
        len(occurrences),
    )
    return occurrences


def _local_day(start: datetime, tz: Optional[tzinfo]) -> date:
    if tz is not None and start.tzinfo is not None:
        return start.astimezone(tz).date()
    return start.date()


def group_by_day(
    occurrences: Iterable[Occurrence], days: Iterable[date], tz: Optional[tzinfo] = None
) -> dict[date, list[Occurrence]]:
    """Bucket occurrences by the day they start on, keeping only ``days``.

    Aware starts are converted to ``tz`` (the view's timezone) before taking
    the date. Every requested day appears in the result, empty days included,
    in the order given.
    """
    by_start: dict[date, list[Occurrence]] = defaultdict(list)
    for occ in occurrences:
        by_start[_local_day(occ.start, tz)].append(occ)
    return {day: sorted(by_start.get(day, []), key=lambda occ: (occ.start, occ.id)) for day in days}


def layout_by_day(
    occurrences: Iterable[Occurrence], days: Iterable[date], tz: Optional[tzinfo] = None
) -> dict[date, dict[str, EventLayout]]:
    """Column layout for each displayed day of a grid view."""
    grouped = group_by_day(occurrences, days, tz)
    return {day: compute_event_layout(day_occurrences) for day, day_occurrences in grouped.items()}


def visible_occurrences(
    events: Iterable[CalendarEvent],
    view: ViewType,
    current: date,
    settings: Optional[RoomCalSettings] = None,
) -> list[Occurrence]:
    """Occurrences shown by ``view`` on ``current`` under the given settings.

    Naive event times are read in ``settings.default_timezone``.
    """
    settings = settings or RoomCalSettings()
    tz = zoneinfo.ZoneInfo(settings.default_timezone)
    range_start, range_end = view_range(
        view,
        current,
        tz=tz,
        week_starts_on=settings.week_starts_on,
        agenda_days=settings.agenda_days,
    )
    expander = RecurrenceExpander(settings.expander_config(), settings.time_provider())
    return expand_events(events, range_start, range_end, expander, tz=tz)
