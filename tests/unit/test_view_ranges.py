"""
Unit tests for roomcal.view_ranges

Covers:
- displayed days and half-open windows per view
- navigation between pages of a view
- merging, grouping and laying out occurrences per day
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from roomcal.config_manager import RoomCalSettings
from roomcal.event_layout import EventLayout
from roomcal.models import CalendarEvent, RecurrenceRule
from roomcal.view_ranges import (
    ViewType,
    expand_events,
    group_by_day,
    layout_by_day,
    localize_event,
    shift_view_date,
    start_of_week,
    view_days,
    view_range,
    visible_occurrences,
)

pytestmark = [pytest.mark.unit, pytest.mark.fast]

# Wednesday
CURRENT = date(2024, 5, 15)
SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class TestViewDays:
    """Days covered by each view."""

    def test_day(self):
        assert view_days(ViewType.DAY, CURRENT) == [CURRENT]

    def test_four_day(self):
        assert view_days("4day", CURRENT) == [date(2024, 5, d) for d in (15, 16, 17, 18)]

    def test_week_starts_on_sunday_by_default(self):
        days = view_days(ViewType.WEEK, CURRENT)
        assert (days[0], days[-1], len(days)) == (date(2024, 5, 12), date(2024, 5, 18), 7)

    def test_week_can_start_on_monday(self):
        days = view_days(ViewType.WEEK, CURRENT, week_starts_on=1)
        assert (days[0], days[-1]) == (date(2024, 5, 13), date(2024, 5, 19))

    def test_month_covers_whole_weeks(self):
        days = view_days(ViewType.MONTH, CURRENT)
        assert days[0] == date(2024, 4, 28)
        assert days[-1] == date(2024, 6, 1)
        assert len(days) % 7 == 0

    def test_month_aligned_to_weeks_has_no_padding(self):
        days = view_days(ViewType.MONTH, date(2026, 2, 10))
        assert (days[0], days[-1], len(days)) == (date(2026, 2, 1), date(2026, 2, 28), 28)

    def test_year(self):
        days = view_days(ViewType.YEAR, CURRENT)
        assert (days[0], days[-1], len(days)) == (date(2024, 1, 1), date(2024, 12, 31), 366)

    def test_agenda_defaults_to_thirty_days(self):
        days = view_days(ViewType.AGENDA, CURRENT)
        assert (days[0], days[-1], len(days)) == (CURRENT, date(2024, 6, 13), 30)

    def test_agenda_length_is_configurable(self):
        assert len(view_days(ViewType.AGENDA, CURRENT, agenda_days=7)) == 7

    def test_accepts_datetime(self):
        assert view_days(ViewType.DAY, datetime(2024, 5, 15, 18, 30)) == [CURRENT]

    def test_start_of_week_on_first_day(self):
        assert start_of_week(date(2024, 5, 12)) == date(2024, 5, 12)
        assert start_of_week(date(2024, 5, 12), week_starts_on=1) == date(2024, 5, 6)


class TestViewRange:
    """Half-open windows handed to the expander."""

    def test_week_range(self):
        assert view_range(ViewType.WEEK, CURRENT) == (datetime(2024, 5, 12), datetime(2024, 5, 19))

    def test_day_range_carries_timezone(self):
        start, end = view_range(ViewType.DAY, CURRENT, tz=SAO_PAULO)
        assert start == datetime(2024, 5, 15, tzinfo=SAO_PAULO)
        assert end - start == timedelta(days=1)


class TestShiftViewDate:
    """Previous/next navigation."""

    @pytest.mark.parametrize(
        "view,steps,expected",
        [
            (ViewType.DAY, 1, date(2024, 5, 16)),
            (ViewType.FOUR_DAY, 1, date(2024, 5, 19)),
            (ViewType.WEEK, -1, date(2024, 5, 8)),
            (ViewType.MONTH, 1, date(2024, 6, 15)),
            (ViewType.YEAR, -1, date(2023, 5, 15)),
            (ViewType.AGENDA, 1, date(2024, 6, 14)),
        ],
    )
    def test_shift(self, view, steps, expected):
        assert shift_view_date(view, CURRENT, steps) == expected

    def test_month_shift_clamps_to_short_month(self):
        assert shift_view_date(ViewType.MONTH, date(2024, 1, 31)) == date(2024, 2, 29)


class TestGroupingAndLayout:
    """Merging series and splitting them into day columns."""

    @pytest.fixture
    def events(self, make_event):
        daily = make_event(datetime(2024, 5, 13, 9), datetime(2024, 5, 13, 10), "daily", event_id="daily")
        clash = make_event(datetime(2024, 5, 14, 9, 30), datetime(2024, 5, 14, 11), event_id="clash")
        early = make_event(datetime(2024, 5, 14, 8), datetime(2024, 5, 14, 8, 30), event_id="early")
        return [daily, clash, early]

    def test_expand_events_sorts_by_start(self, events, expander):
        occurrences = expand_events(events, datetime(2024, 5, 14), datetime(2024, 5, 15), expander)
        assert [occ.id for occ in occurrences] == ["early", "daily_1", "clash"]

    def test_group_by_day_keeps_empty_days(self, events, expander):
        days = [date(2024, 5, 12), date(2024, 5, 13), date(2024, 5, 14)]
        occurrences = expand_events(events, datetime(2024, 5, 12), datetime(2024, 5, 15), expander)
        grouped = group_by_day(occurrences, days)
        assert list(grouped) == days
        assert grouped[date(2024, 5, 12)] == []
        assert [occ.id for occ in grouped[date(2024, 5, 14)]] == ["early", "daily_1", "clash"]

    def test_group_by_day_drops_days_not_requested(self, events, expander):
        occurrences = expand_events(events, datetime(2024, 5, 13), datetime(2024, 5, 15), expander)
        assert list(group_by_day(occurrences, [date(2024, 5, 13)])) == [date(2024, 5, 13)]

    def test_layout_by_day(self, events, expander):
        days = [date(2024, 5, 13), date(2024, 5, 14)]
        occurrences = expand_events(events, datetime(2024, 5, 13), datetime(2024, 5, 15), expander)
        layouts = layout_by_day(occurrences, days)
        assert layouts[date(2024, 5, 13)] == {"daily_0": EventLayout(0, 1, 1)}
        assert layouts[date(2024, 5, 14)] == {
            "early": EventLayout(0, 1, 1),
            "daily_1": EventLayout(0, 2, 1),
            "clash": EventLayout(1, 2, 1),
        }


class TestVisibleOccurrences:
    """End-to-end: settings, window and expansion."""

    def test_week_view_with_monday_start(self, monkeypatch, make_event):
        monkeypatch.setenv("ROOMCAL_TEST_TIME", "2024-05-15T10:00:00")
        rule = RecurrenceRule(frequency="weekly", days_of_week=[0, 3], end_type="never")
        event = make_event(
            datetime(2024, 5, 1, 14, tzinfo=SAO_PAULO),
            datetime(2024, 5, 1, 15, tzinfo=SAO_PAULO),
            rule,
            event_id="aula",
        )
        settings = RoomCalSettings(week_starts_on=1)

        result = visible_occurrences([event], ViewType.WEEK, CURRENT, settings)

        assert [occ.start.date() for occ in result] == [date(2024, 5, 15), date(2024, 5, 19)]

    def test_max_instances_setting_is_applied(self, monkeypatch, make_event):
        monkeypatch.setenv("ROOMCAL_TEST_TIME", "2024-05-15T10:00:00")
        event = make_event(
            datetime(2024, 5, 1, 8, tzinfo=SAO_PAULO),
            datetime(2024, 5, 1, 9, tzinfo=SAO_PAULO),
            "daily",
        )
        settings = RoomCalSettings(max_instances=3)
        result = visible_occurrences([event], ViewType.MONTH, CURRENT, settings)
        assert [occ.start.day for occ in result] == [1, 2, 3]

    def test_naive_payload_is_read_in_default_timezone(self, monkeypatch):
        monkeypatch.setenv("ROOMCAL_TEST_TIME", "2024-05-15T10:00:00")
        event = CalendarEvent.model_validate(
            {
                "id": "42",
                "title": "Seminário",
                "start": "2024-05-15T09:00:00",
                "end": "2024-05-15T10:00:00",
                "recurrence": "daily",
            }
        )

        result = visible_occurrences([event], ViewType.WEEK, CURRENT, RoomCalSettings())

        assert [occ.id for occ in result] == ["42_0", "42_1", "42_2", "42_3"]
        assert result[0].start == datetime(2024, 5, 15, 9, tzinfo=SAO_PAULO)
        assert event.start.tzinfo is None

    def test_naive_and_aware_events_share_a_view(self, monkeypatch, make_event):
        monkeypatch.setenv("ROOMCAL_TEST_TIME", "2024-05-15T10:00:00")
        naive = make_event(datetime(2024, 5, 15, 9), datetime(2024, 5, 15, 10), event_id="naive")
        aware = make_event(
            datetime(2024, 5, 15, 11, tzinfo=timezone.utc),
            datetime(2024, 5, 15, 12, tzinfo=timezone.utc),
            event_id="utc",
        )
        result = visible_occurrences([aware, naive], ViewType.DAY, CURRENT)
        # 11:00Z is 08:00 in Sao Paulo
        assert [occ.id for occ in result] == ["utc", "naive"]


class TestViewTimezone:
    """Days are taken in the view's timezone, not the event's offset."""

    def test_localize_event(self, make_event):
        naive = make_event(datetime(2024, 5, 15, 9), datetime(2024, 5, 15, 10))
        localized = localize_event(naive, SAO_PAULO)
        assert localized.start == datetime(2024, 5, 15, 9, tzinfo=SAO_PAULO)
        assert localized.end.tzinfo is SAO_PAULO
        aware = localized.model_copy()
        assert localize_event(aware, timezone.utc) is aware

    def test_utc_event_is_grouped_on_local_day(self, monkeypatch, make_event):
        monkeypatch.setenv("ROOMCAL_TEST_TIME", "2024-05-14T10:00:00")
        # 01:00Z on May 15 is 22:00 on May 14 in Sao Paulo
        event = make_event(
            datetime(2024, 5, 15, 1, tzinfo=timezone.utc),
            datetime(2024, 5, 15, 2, tzinfo=timezone.utc),
            event_id="u",
        )
        day = date(2024, 5, 14)

        occurrences = visible_occurrences([event], ViewType.DAY, day)

        assert [occ.id for occ in occurrences] == ["u"]
        assert [occ.id for occ in group_by_day(occurrences, [day], tz=SAO_PAULO)[day]] == ["u"]
        assert layout_by_day(occurrences, [day], tz=SAO_PAULO)[day] == {"u": EventLayout(0, 1, 1)}

    def test_without_timezone_the_event_offset_decides(self, make_event):
        event = make_event(
            datetime(2024, 5, 15, 1, tzinfo=timezone.utc),
            datetime(2024, 5, 15, 2, tzinfo=timezone.utc),
            event_id="u",
        )
        occurrences = expand_events(
            [event],
            datetime(2024, 5, 14, tzinfo=timezone.utc),
            datetime(2024, 5, 16, tzinfo=timezone.utc),
        )
        grouped = group_by_day(occurrences, [date(2024, 5, 14), date(2024, 5, 15)])
        assert grouped[date(2024, 5, 14)] == []
        assert [occ.id for occ in grouped[date(2024, 5, 15)]] == ["u"]
