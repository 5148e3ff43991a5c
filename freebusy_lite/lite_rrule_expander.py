"""RRULE expansion of extracted events into busy intervals."""

import logging
import re
from datetime import UTC, datetime, timedelta

from dateutil.rrule import rruleset, rrulestr

from .lite_exceptions import RecurrenceExpansionError
from .lite_models import BusyInterval, EventRecord

logger = logging.getLogger(__name__)

# UNTIL=YYYYMMDD, UNTIL=YYYYMMDDTHHMMSS or UNTIL=YYYYMMDDTHHMMSSZ
_UNTIL_RE = re.compile(r"UNTIL=(\d{8})(T\d{6})?(Z)?", re.IGNORECASE)


def _to_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _normalize_until(rrule_string: str, dtstart: datetime) -> str:
    """Rewrite a floating UNTIL as UTC when DTSTART is timezone-aware.

    dateutil refuses to mix an aware DTSTART with a naive UNTIL. Calendar servers
    routinely emit date-only UNTIL values for all-day series, so the value is
    interpreted in DTSTART's timezone and converted to UTC. A date-only UNTIL is
    taken as the end of that day so the last occurrence stays included.
    """
    if dtstart.tzinfo is None:
        return rrule_string

    match = _UNTIL_RE.search(rrule_string)
    if match is None or match.group(3):
        return rrule_string

    date_part, time_part = match.group(1), match.group(2) or "T235959"
    local_until = datetime.strptime(date_part + time_part.upper(), "%Y%m%dT%H%M%S")
    until_utc = local_until.replace(tzinfo=dtstart.tzinfo).astimezone(UTC)
    replacement = "UNTIL=" + until_utc.strftime("%Y%m%dT%H%M%SZ")
    return rrule_string[: match.start()] + replacement + rrule_string[match.end() :]


def build_ruleset(event: EventRecord) -> rruleset:
    """Reconstruct the event's recurrence as a dateutil rruleset.

    The rule is anchored at the event's own start (in its own timezone) and
    every entry of ``event.exdates`` is excluded.

    Raises:
        RecurrenceExpansionError: If the rule is empty or cannot be parsed
    """
    if not event.rrule or not event.rrule.strip():
        raise RecurrenceExpansionError("Empty RRULE string")

    dtstart = event.start
    try:
        parsed = rrulestr(_normalize_until(event.rrule.strip(), dtstart), dtstart=dtstart)
    except (ValueError, TypeError) as e:
        raise RecurrenceExpansionError(f"Invalid RRULE {event.rrule!r}: {e}") from e

    if isinstance(parsed, rruleset):
        rule_set = parsed
    else:
        rule_set = rruleset()
        rule_set.rrule(parsed)

    for exdate in event.exdates:
        rule_set.exdate(exdate if exdate.tzinfo else exdate.replace(tzinfo=UTC))

    return rule_set


def expand_event(
    event: EventRecord, window_start: datetime, window_end: datetime
) -> list[BusyInterval]:
    """Expand one event into the busy intervals that fall inside a window.

    One-off events produce a single interval when they overlap the window
    (touching endpoints count). Recurring events produce one interval per
    occurrence whose start lies in ``[window_start, window_end]``; every
    occurrence reuses the template's duration.

    Args:
        event: Extracted event record (never modified)
        window_start: Inclusive window start (naive values are taken as UTC)
        window_end: Inclusive window end (naive values are taken as UTC)

    Returns:
        List of BusyInterval objects with UTC bounds (possibly empty)

    Raises:
        RecurrenceExpansionError: If the event's recurrence rule is unusable
    """
    start_utc = _to_utc(window_start)
    end_utc = _to_utc(window_end)

    if not event.is_recurring:
        if _to_utc(event.end) >= start_utc and _to_utc(event.start) <= end_utc:
            return [BusyInterval(start=_to_utc(event.start), end=_to_utc(event.end))]
        return []

    rule_set = build_ruleset(event)
    duration: timedelta = _to_utc(event.end) - _to_utc(event.start)

    try:
        occurrences = rule_set.between(start_utc, end_utc, inc=True)
    except (ValueError, TypeError) as e:
        raise RecurrenceExpansionError(f"Failed to expand RRULE {event.rrule!r}: {e}") from e

    intervals = []
    for occurrence in occurrences:
        occurrence_utc = _to_utc(occurrence)
        intervals.append(BusyInterval(start=occurrence_utc, end=occurrence_utc + duration))
    logger.debug(
        "Expanded %s (%s) to %d occurrences", event.uid or "<no-uid>", event.rrule, len(intervals)
    )
    return intervals

