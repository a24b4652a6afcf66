"""roomcal - recurrence expansion and grid layout for room-booking calendars.

The package is a pure computation core: it never fetches or stores events.
Views hand it stored events and a window and get back occurrences and
column layouts.
"""

__version__ = "0.1.0"

from .event_layout import ColumnStyle, EventLayout, column_style, compute_event_layout
from .exceptions import ConfigError, RecurrenceRuleError, RoomCalError, SeriesEditError
from .models import (
    CalendarEvent,
    EndType,
    Frequency,
    Occurrence,
    RecurrenceRule,
    normalize_recurrence,
)
from .recurrence_expander import ExpanderConfig, RecurrenceExpander, expand_event

__all__ = [
    "CalendarEvent",
    "ColumnStyle",
    "ConfigError",
    "EndType",
    "EventLayout",
    "ExpanderConfig",
    "Frequency",
    "Occurrence",
    "RecurrenceExpander",
    "RecurrenceRule",
    "RecurrenceRuleError",
    "RoomCalError",
    "SeriesEditError",
    "column_style",
    "compute_event_layout",
    "expand_event",
    "normalize_recurrence",
]
