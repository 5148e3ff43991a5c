"""Data models for CalDAV objects, extracted events and busy intervals."""

from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

BUSY_TITLE = "Busy"
DEFAULT_CALENDAR_NAME = "default"


def format_iso_utc(dt: datetime) -> str:
    """Serialize a datetime as a UTC ISO-8601 string with millisecond precision.

    Naive datetimes are assumed to already be UTC.

    Example:
        >>> format_iso_utc(datetime(2024, 3, 1, 15, 0, tzinfo=UTC))
        '2024-03-01T15:00:00.000Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CalendarObject(BaseModel):
    """A single resource inside a CalDAV collection.

    ``data`` holds the calendar payload in whatever shape the transport produced:
    text, raw bytes, or a property bag (mapping of property name to value).
    """

    href: str = Field(default="", description="Resource URL or path")
    data: Any = Field(default=None, description="Calendar payload (str, bytes or property bag)")


class CalendarCollection(BaseModel):
    """A CalDAV calendar collection with its member objects."""

    url: str = Field(..., description="Collection URL")
    display_name: Optional[str] = Field(default=None, description="Collection display name")
    objects: list[CalendarObject] = Field(default_factory=list)


class EventRecord(BaseModel):
    """Normalized timed event extracted from a VEVENT component.

    Records are immutable; expansion produces new BusyInterval objects and never
    modifies the record it expands.
    """

    start: datetime = Field(..., description="Event start (timezone-aware)")
    end: datetime = Field(..., description="Event end (timezone-aware)")
    rrule: Optional[str] = Field(
        default=None, description="RRULE value anchored at start; None for one-off events"
    )
    exdates: tuple[datetime, ...] = Field(
        default=(), description="Occurrence starts excluded from the recurrence"
    )
    calendar_name: str = Field(default=DEFAULT_CALENDAR_NAME)
    uid: Optional[str] = Field(default=None, description="iCalendar UID, for diagnostics")

    model_config = ConfigDict(frozen=True)

    @property
    def is_recurring(self) -> bool:
        """True if the event carries a recurrence rule."""
        return bool(self.rrule)


class BusyInterval(BaseModel):
    """Opaque occupied interval returned to API callers."""

    start: datetime
    end: datetime
    title: str = BUSY_TITLE

    model_config = ConfigDict(frozen=True)

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize interval bounds to UTC ISO format."""
        return format_iso_utc(dt)


class FreeBusyResponse(BaseModel):
    """Successful /api/freebusy payload."""

    busy: list[BusyInterval] = Field(default_factory=list)
