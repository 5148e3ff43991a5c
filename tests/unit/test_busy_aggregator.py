"""Tests for freebusy_lite.busy_aggregator."""

import logging
from datetime import UTC, datetime, timedelta, timezone

import pytest

from freebusy_lite.busy_aggregator import (
    INVALID_PARAMS_MESSAGE,
    MISSING_PARAMS_MESSAGE,
    FreeBusyService,
    expand_all,
    parse_window,
)
from freebusy_lite.event_cache import RawEventCache
from freebusy_lite.lite_event_extractor import ExtractionResult
from freebusy_lite.lite_exceptions import CalDAVAuthError, WindowValidationError
from freebusy_lite.lite_models import EventRecord

pytestmark = pytest.mark.unit


@pytest.fixture
def service(fake_fetcher, fake_clock) -> FreeBusyService:
    return FreeBusyService(RawEventCache(fake_fetcher, clock=fake_clock))


class TestParseWindow:
    def test_parse_window_when_zulu_timestamps_then_aware_utc(self) -> None:
        start, end = parse_window("2024-03-01T00:00:00Z", "2024-03-08T00:00:00.000Z")

        assert start == datetime(2024, 3, 1, tzinfo=UTC)
        assert end == datetime(2024, 3, 8, tzinfo=UTC)

    def test_parse_window_when_offset_then_offset_kept(self) -> None:
        start, _ = parse_window("2024-03-01T09:00:00+02:00", "2024-03-02T00:00:00Z")

        assert start.utcoffset() == timedelta(hours=2)
        assert start == datetime(2024, 3, 1, 7, tzinfo=UTC)

    def test_parse_window_when_naive_then_utc(self) -> None:
        start, _ = parse_window("2024-03-01T09:00:00", "2024-03-02")

        assert start.tzinfo == UTC

    @pytest.mark.parametrize("start,end", [(None, "2024-03-01"), ("2024-03-01", None), ("", "")])
    def test_parse_window_when_missing_then_missing_message(self, start, end) -> None:
        with pytest.raises(WindowValidationError, match="query params required"):
            parse_window(start, end)

    def test_parse_window_when_garbage_then_invalid_message(self) -> None:
        with pytest.raises(WindowValidationError) as exc_info:
            parse_window("yesterday", "2024-03-01")

        assert str(exc_info.value) == INVALID_PARAMS_MESSAGE


class TestExpandAll:
    def test_expand_all_when_one_rule_invalid_then_others_still_expanded(self) -> None:
        good = EventRecord(
            start=datetime(2024, 1, 1, 9, tzinfo=UTC),
            end=datetime(2024, 1, 1, 10, tzinfo=UTC),
            rrule="FREQ=DAILY;COUNT=2",
        )
        bad = EventRecord(
            start=datetime(2024, 1, 1, 9, tzinfo=UTC),
            end=datetime(2024, 1, 1, 10, tzinfo=UTC),
            rrule="FREQ=NEVER",
            uid="bad",
        )

        intervals, failures = expand_all(
            [bad, good], datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 5, tzinfo=UTC)
        )

        assert len(intervals) == 2
        assert [f.event.uid for f in failures] == ["bad"]

    def test_expand_all_keeps_event_order(self) -> None:
        later = EventRecord(
            start=datetime(2024, 1, 3, tzinfo=UTC), end=datetime(2024, 1, 3, 1, tzinfo=UTC)
        )
        earlier = EventRecord(
            start=datetime(2024, 1, 2, tzinfo=UTC), end=datetime(2024, 1, 2, 1, tzinfo=UTC)
        )

        intervals, _ = expand_all(
            [later, earlier], datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 5, tzinfo=UTC)
        )

        assert [i.start.day for i in intervals] == [3, 2]


class TestFreeBusyService:
    @pytest.mark.asyncio
    async def test_handle_request_when_valid_window_then_busy_list(self, service) -> None:
        response = await service.handle_request(
            "GET", {"start": "2024-03-01T00:00:00Z", "end": "2024-03-08T00:00:00Z"}
        )

        assert response.status == 200
        assert response.body == {
            "busy": [
                {
                    "start": "2024-03-07T15:00:00.000Z",
                    "end": "2024-03-07T16:00:00.000Z",
                    "title": "Busy",
                },
                {
                    "start": "2024-03-03T10:00:00.000Z",
                    "end": "2024-03-03T11:00:00.000Z",
                    "title": "Busy",
                },
            ]
        }

    @pytest.mark.asyncio
    async def test_handle_request_when_end_missing_then_400_without_fetch(
        self, service, fake_fetcher
    ) -> None:
        response = await service.handle_request("GET", {"start": "2024-03-01T00:00:00Z"})

        assert response.status == 400
        assert response.body == {"error": MISSING_PARAMS_MESSAGE}
        assert fake_fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_handle_request_when_post_then_405(self, service, fake_fetcher) -> None:
        response = await service.handle_request("POST", {})

        assert response.status == 405
        assert response.body == {"error": "Method not allowed"}
        assert fake_fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_handle_request_when_fetch_fails_then_500_with_detail(
        self, service, fake_fetcher
    ) -> None:
        fake_fetcher.error = CalDAVAuthError("CalDAV authentication failed (HTTP 401)")

        response = await service.handle_request(
            "GET", {"start": "2024-03-01T00:00:00Z", "end": "2024-03-08T00:00:00Z"}
        )

        assert response.status == 500
        assert response.body == {
            "error": "failed to fetch events",
            "detail": "CalDAV authentication failed (HTTP 401)",
        }

    @pytest.mark.asyncio
    async def test_handle_request_when_empty_window_then_empty_busy(self, service) -> None:
        response = await service.handle_request(
            "GET", {"start": "2030-01-01T00:00:00Z", "end": "2030-01-01T01:00:00Z"}
        )

        assert response.status == 200
        assert response.body == {"busy": []}

    @pytest.mark.asyncio
    async def test_get_busy_intervals_when_offset_window_then_utc_output(self, service) -> None:
        tz = timezone(timedelta(hours=-5))

        intervals = await service.get_busy_intervals(
            datetime(2024, 3, 3, 0, tzinfo=tz), datetime(2024, 3, 3, 23, tzinfo=tz)
        )

        assert [i.start for i in intervals] == [datetime(2024, 3, 3, 10, tzinfo=UTC)]

    @pytest.mark.asyncio
    async def test_health_when_loaded_then_reports_event_count(self, service) -> None:
        assert service.health() == {"status": "ok", "event_count": 0, "cache_age_s": None}

        await service.cache.get_events()

        assert service.health() == {"status": "ok", "event_count": 2, "cache_age_s": 0}

    @pytest.mark.asyncio
    async def test_get_busy_intervals_when_rule_invalid_then_warning_logged(
        self, fake_fetcher, fake_clock, caplog
    ) -> None:
        good = EventRecord(
            start=datetime(2024, 1, 1, 9, tzinfo=UTC), end=datetime(2024, 1, 1, 10, tzinfo=UTC)
        )
        bad = EventRecord(
            start=datetime(2024, 1, 1, 9, tzinfo=UTC),
            end=datetime(2024, 1, 1, 10, tzinfo=UTC),
            rrule="FREQ=NEVER",
            calendar_name="Work",
            uid="broken-rule@freebusy.test",
        )
        cache = RawEventCache(
            fake_fetcher, extractor=lambda _: ExtractionResult(events=[bad, good]), clock=fake_clock
        )
        service = FreeBusyService(cache)

        with caplog.at_level(logging.WARNING, logger="freebusy_lite.busy_aggregator"):
            intervals = await service.get_busy_intervals(
                datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 2, tzinfo=UTC)
            )

        assert len(intervals) == 1
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Skipping event broken-rule@freebusy.test from 'Work'" in warnings[0].getMessage()
