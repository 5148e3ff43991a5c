"""Extraction of VEVENT records from raw CalDAV objects.

Each object's payload is located by trying a fixed, ordered list of strategies
(text, raw bytes, property bag). The payload is parsed with ``icalendar`` and
every VEVENT becomes an immutable EventRecord tagged with its collection name.
A failure on one object is recorded and extraction moves on to the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Optional

from icalendar import Calendar

from .lite_models import CalendarCollection, CalendarObject, DEFAULT_CALENDAR_NAME, EventRecord

logger = logging.getLogger(__name__)

ICALENDAR_HEADER = "BEGIN:VCALENDAR"

PayloadStrategy = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class ExtractionError:
    """A single object that could not be turned into event records."""

    href: str
    calendar_name: str
    message: str


@dataclass
class ExtractionResult:
    """Outcome of a batch extraction: records plus per-object failures."""

    events: list[EventRecord] = field(default_factory=list)
    errors: list[ExtractionError] = field(default_factory=list)


def _payload_from_text(data: Any) -> Optional[str]:
    return data if isinstance(data, str) else None


def _payload_from_bytes(data: Any) -> Optional[str]:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", errors="replace")
    return None


def _payload_from_property_bag(data: Any) -> Optional[str]:
    """Find the first string property that looks like an iCalendar document."""
    if not isinstance(data, Mapping):
        return None
    props = data.get("props", data)
    if not isinstance(props, Mapping):
        return None
    for value in props.values():
        if isinstance(value, str) and value.startswith(ICALENDAR_HEADER):
            return value
    return None


PAYLOAD_STRATEGIES: tuple[PayloadStrategy, ...] = (
    _payload_from_text,
    _payload_from_bytes,
    _payload_from_property_bag,
)


def locate_payload(obj: CalendarObject) -> Optional[str]:
    """Return the object's iCalendar text, or None if it carries none."""
    for strategy in PAYLOAD_STRATEGIES:
        payload = strategy(obj.data)
        if payload is not None:
            return payload
    return None


def _as_aware_datetime(value: date | datetime) -> datetime:
    """Convert an iCalendar DATE/DATE-TIME value to an aware datetime.

    DATE values (all-day events) become midnight UTC and floating times are
    treated as UTC. Zoned values keep their own timezone.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return datetime.combine(value, time.min, tzinfo=UTC)


def _property_dt(component: Any, name: str) -> Optional[date | datetime]:
    prop = component.get(name)
    if prop is None:
        return None
    value = getattr(prop, "dt", None)
    if isinstance(value, (date, datetime)):
        return value
    raise ValueError(f"{name} has an unsupported value: {prop!r}")


def _rrule_text(component: Any) -> Optional[str]:
    prop = component.get("RRULE")
    if prop is None:
        return None
    # Multiple RRULE lines are deprecated by RFC 5545; the first one wins.
    if isinstance(prop, list):
        prop = prop[0]
    return prop.to_ical().decode("utf-8")


def _exdate_value(value: date | datetime, raw_start: date | datetime) -> datetime:
    """Resolve one EXDATE entry against the series start.

    A DATE entry on a timed series excludes the occurrence on that day, at the
    series' own time of day and timezone.
    """
    if not isinstance(value, datetime) and isinstance(raw_start, datetime):
        return _as_aware_datetime(datetime.combine(value, raw_start.timetz()))
    return _as_aware_datetime(value)


def _exdates(component: Any, raw_start: date | datetime) -> list[datetime]:
    prop = component.get("EXDATE")
    if prop is None:
        return []
    props = prop if isinstance(prop, list) else [prop]
    return [
        _exdate_value(item.dt, raw_start) for exdate_list in props for item in exdate_list.dts
    ]


def _component_to_record(
    component: Any, calendar_name: str, overridden: Iterable[datetime] = ()
) -> EventRecord:
    """Build an EventRecord from a VEVENT component.

    Raises:
        ValueError: If DTSTART is missing or a date property is unusable
    """
    raw_start = _property_dt(component, "DTSTART")
    if raw_start is None:
        raise ValueError("VEVENT has no DTSTART")
    start = _as_aware_datetime(raw_start)

    raw_end = _property_dt(component, "DTEND")
    if raw_end is not None:
        end = _as_aware_datetime(raw_end)
    elif component.get("DURATION") is not None:
        end = start + component.get("DURATION").dt
    elif not isinstance(raw_start, datetime):
        end = start + timedelta(days=1)
    else:
        end = start

    rrule = _rrule_text(component)
    exdates: tuple[datetime, ...] = ()
    if rrule:
        exdates = tuple(_exdates(component, raw_start)) + tuple(overridden)

    uid = component.get("UID")
    return EventRecord(
        start=start,
        end=end,
        rrule=rrule,
        exdates=exdates,
        calendar_name=calendar_name,
        uid=str(uid) if uid is not None else None,
    )


def parse_payload(payload: str, calendar_name: str) -> list[EventRecord]:
    """Parse one iCalendar document into event records.

    Only VEVENT components are kept. Instances overridden through RECURRENCE-ID
    become their own records and their original slot is excluded from the
    master's recurrence.

    Raises:
        ValueError: If the document or one of its VEVENTs is malformed
    """
    calendar = Calendar.from_ical(payload)
    vevents = calendar.walk("VEVENT")

    overridden_by_uid: dict[str, list[datetime]] = {}
    for component in vevents:
        if component.get("RECURRENCE-ID") is not None and component.get("RRULE") is None:
            recurrence_id = _property_dt(component, "RECURRENCE-ID")
            if recurrence_id is not None:
                overridden_by_uid.setdefault(str(component.get("UID")), []).append(
                    _as_aware_datetime(recurrence_id)
                )

    return [
        _component_to_record(
            component, calendar_name, overridden_by_uid.get(str(component.get("UID")), ())
        )
        for component in vevents
    ]


def extract_events(collections: Iterable[CalendarCollection]) -> ExtractionResult:
    """Turn fetched CalDAV collections into event records.

    Objects without a payload are skipped silently. Objects whose payload fails
    to parse are reported in ``ExtractionResult.errors``; the rest of the batch
    is still processed.
    """
    result = ExtractionResult()

    for collection in collections:
        calendar_name = collection.display_name or DEFAULT_CALENDAR_NAME
        for obj in collection.objects:
            payload = locate_payload(obj)
            if payload is None:
                logger.debug("Skipping %s in %r: no calendar payload", obj.href, calendar_name)
                continue

            try:
                records = parse_payload(payload, calendar_name)
            except Exception as e:
                result.errors.append(
                    ExtractionError(href=obj.href, calendar_name=calendar_name, message=str(e))
                )
                continue

            result.events.extend(records)

    logger.debug(
        "Extracted %d events (%d objects failed)", len(result.events), len(result.errors)
    )
    return result
