"""Busy-interval aggregation and framework-free request handling.

``FreeBusyService`` is the single core behind both deployment shapes: the
aiohttp server and the serverless function adapter translate their native
request objects into ``handle_request(method, query)`` and serialize the
returned ``ServiceResponse``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Optional

from dateutil.parser import isoparse

from .event_cache import RawEventCache
from .lite_exceptions import WindowValidationError
from .lite_models import BusyInterval, EventRecord, FreeBusyResponse
from .lite_rrule_expander import expand_event

logger = logging.getLogger(__name__)

MISSING_PARAMS_MESSAGE = "start and end query params required (ISO strings)"
INVALID_PARAMS_MESSAGE = "start and end must be valid ISO 8601 timestamps"
METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed"
FETCH_FAILED_MESSAGE = "failed to fetch events"


@dataclass(frozen=True)
class ExpansionFailure:
    """An event whose recurrence could not be expanded."""

    event: EventRecord
    message: str


@dataclass(frozen=True)
class ServiceResponse:
    """Status code plus JSON-serializable body, independent of any framework."""

    status: int
    body: dict[str, Any]


def _parse_timestamp(value: str) -> datetime:
    parsed = isoparse(value.strip())
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def parse_window(start: Optional[str], end: Optional[str]) -> tuple[datetime, datetime]:
    """Validate and parse the query window bounds.

    Naive timestamps are taken as UTC. A reversed window is accepted and simply
    matches nothing.

    Raises:
        WindowValidationError: If a bound is missing, empty or not ISO 8601
    """
    if not start or not end:
        raise WindowValidationError(MISSING_PARAMS_MESSAGE)
    try:
        return _parse_timestamp(start), _parse_timestamp(end)
    except (ValueError, OverflowError) as e:
        raise WindowValidationError(INVALID_PARAMS_MESSAGE) from e


def expand_all(
    events: Iterable[EventRecord], window_start: datetime, window_end: datetime
) -> tuple[list[BusyInterval], list[ExpansionFailure]]:
    """Expand every event independently and concatenate the results.

    Intervals keep the events' iteration order; they are not sorted by time.
    An event whose expansion fails is reported in the failures list and does not
    affect the others.
    """
    intervals: list[BusyInterval] = []
    failures: list[ExpansionFailure] = []
    for event in events:
        try:
            intervals.extend(expand_event(event, window_start, window_end))
        except Exception as e:
            failures.append(ExpansionFailure(event=event, message=str(e)))
    return intervals, failures


class FreeBusyService:
    """Answers busy-interval queries from a RawEventCache."""

    def __init__(self, cache: RawEventCache) -> None:
        self.cache = cache

    async def get_busy_intervals(
        self, window_start: datetime, window_end: datetime
    ) -> list[BusyInterval]:
        """Return busy intervals intersecting the window.

        Refreshes the cache first if it is stale; fetch errors propagate.
        """
        events = await self.cache.get_events()
        intervals, failures = expand_all(events, window_start, window_end)

        for failure in failures:
            logger.warning(
                "Skipping event %s from %r: %s",
                failure.event.uid or "<no-uid>",
                failure.event.calendar_name,
                failure.message,
            )

        logger.debug(
            "Window %s..%s: %d intervals from %d events",
            window_start.isoformat(),
            window_end.isoformat(),
            len(intervals),
            len(events),
        )
        return intervals

    async def handle_request(self, method: str, query: Mapping[str, Any]) -> ServiceResponse:
        """Handle a /api/freebusy request.

        Args:
            method: HTTP method of the incoming request
            query: Query-string parameters

        Returns:
            ServiceResponse with 200, 400, 405 or 500 and the JSON body
        """
        if method.upper() != "GET":
            return ServiceResponse(405, {"error": METHOD_NOT_ALLOWED_MESSAGE})

        try:
            window_start, window_end = parse_window(query.get("start"), query.get("end"))
        except WindowValidationError as e:
            logger.debug("Rejected freebusy query %r: %s", dict(query), e)
            return ServiceResponse(400, {"error": str(e)})

        try:
            intervals = await self.get_busy_intervals(window_start, window_end)
        except Exception as e:
            logger.exception("Failed to build busy intervals")
            return ServiceResponse(500, {"error": FETCH_FAILED_MESSAGE, "detail": str(e)})

        return ServiceResponse(200, FreeBusyResponse(busy=intervals).model_dump(mode="json"))

    def health(self) -> dict[str, Any]:
        """Return a small health payload describing the cache."""
        status = self.cache.status()
        return {
            "status": "ok",
            "event_count": status.event_count,
            "cache_age_s": None if status.age_seconds is None else round(status.age_seconds, 1),
        }
