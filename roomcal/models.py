"""Data models for room-booking events and recurrence rules."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel


class Frequency(str, Enum):
    """Recurrence frequencies understood by the expander."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class EndType(str, Enum):
    """Termination modes for a recurring series."""

    NEVER = "never"
    DATE = "date"
    COUNT = "count"


NO_RECURRENCE = "none"


def to_date_key(value: Union[date, datetime, str]) -> str:
    """Return the ``yyyy-MM-dd`` key for a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date_parser.isoparse(value.strip()).date().isoformat()


def _coerce_date(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date_parser.isoparse(value.strip()).date()
    return value


class RecurrenceRule(BaseModel):
    """Structured recurrence rule attached to an event.

    Fields are deliberately permissive: an unknown frequency or a missing end
    condition is accepted here and rejected by the expander, which renders
    such a series as empty instead of failing the whole view.
    """

    frequency: str = Field(..., description="daily, weekly, monthly or yearly")
    interval: int = Field(default=1, description="Step multiplier (every N units)")
    days_of_week: Optional[tuple[int, ...]] = Field(
        default=None, description="Weekday indices, 0=Sunday..6=Saturday"
    )
    end_type: str = Field(default=EndType.NEVER.value, description="never, date or count")
    end_date: Optional[date] = Field(default=None, description="Inclusive last day of the series")
    occurrence_count: Optional[int] = Field(
        default=None, description="Total instances including the first"
    )
    exceptions: tuple[str, ...] = Field(
        default_factory=tuple, description="Suppressed occurrence date keys (yyyy-MM-dd)"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    @field_validator("frequency", "end_type", mode="before")
    @classmethod
    def _lower_tag(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("end_date", mode="before")
    @classmethod
    def _parse_end_date(cls, value: Any) -> Any:
        return _coerce_date(value)

    @field_validator("exceptions", mode="before")
    @classmethod
    def _normalize_exceptions(cls, value: Any) -> Any:
        if value is None:
            return ()
        return tuple(to_date_key(item) for item in value)

    @field_serializer("end_date", when_used="unless-none")
    def serialize_end_date(self, value: date) -> str:
        """Serialize the end date as an ISO date string."""
        return value.isoformat()

    @property
    def uses_weekdays(self) -> bool:
        """True when expansion is driven by an explicit weekday set."""
        return self.frequency == Frequency.WEEKLY.value and bool(self.days_of_week)


RecurrenceValue = Union[RecurrenceRule, str, None]


def normalize_recurrence(recurrence: RecurrenceValue) -> Optional[RecurrenceRule]:
    """Resolve the simple-tag / structured-rule union into one rule.

    ``None`` and ``"none"`` mean a single, non-repeating event.
    """
    if recurrence is None:
        return None
    if isinstance(recurrence, RecurrenceRule):
        return recurrence
    tag = recurrence.strip().lower()
    if not tag or tag == NO_RECURRENCE:
        return None
    return RecurrenceRule(frequency=tag, interval=1, end_type=EndType.NEVER.value)


class CalendarEvent(BaseModel):
    """A stored room booking as supplied by the service layer."""

    id: str = Field(..., description="Event ID")
    title: str = Field(default="", description="Event title")
    start: datetime = Field(..., description="Event start time")
    end: datetime = Field(..., description="Event end time")
    all_day: bool = Field(default=False, description="All-day event flag")
    description: Optional[str] = Field(default=None, description="Event description")
    location: Optional[str] = Field(default=None, description="Event location")
    color: Optional[str] = Field(default=None, description="Display color")
    calendar_id: Optional[str] = Field(default=None, description="Room (calendar) ID")
    created_by: Optional[str] = Field(default=None, description="Creator user ID")
    phone: Optional[str] = Field(default=None, description="Contact phone")
    recurrence: RecurrenceValue = Field(default=None, description="Recurrence tag or rule")

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    @field_validator("recurrence", mode="before")
    @classmethod
    def _parse_recurrence(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return RecurrenceRule.model_validate(value)
        return value

    @model_validator(mode="after")
    def _check_interval(self) -> "CalendarEvent":
        if self.start >= self.end:
            raise ValueError(
                f"event {self.id!r} must start before it ends "
                f"(start={self.start.isoformat()}, end={self.end.isoformat()})"
            )
        return self

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()

    @property
    def rule(self) -> Optional[RecurrenceRule]:
        """The canonical recurrence rule, or None for a single event."""
        return normalize_recurrence(self.recurrence)

    @property
    def is_recurring(self) -> bool:
        """Check whether the event repeats."""
        return self.rule is not None


class Occurrence(CalendarEvent):
    """A concrete instance of an event inside a display window.

    Occurrences are never persisted; ``series_id`` points back at the stored
    event so edits and deletes can be resolved to the series.
    """

    series_id: str = Field(..., description="ID of the stored event")
    sequence: Optional[int] = Field(
        default=None, description="Zero-based index within the expansion"
    )

    @classmethod
    def from_event(
        cls,
        event: CalendarEvent,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        sequence: Optional[int] = None,
    ) -> "Occurrence":
        """Materialize an occurrence from its owning event.

        The event's fields are copied without re-validation; ``start``/``end``
        are taken from the already-validated event shifted by the expander.
        """
        values = dict(event)
        values.pop("series_id", None)
        values.pop("sequence", None)
        values["start"] = event.start if start is None else start
        values["end"] = event.end if end is None else end
        values["id"] = event.id if sequence is None else f"{event.id}_{sequence}"
        return cls.model_construct(series_id=event.id, sequence=sequence, **values)
