from collections.abc import Callable, Generator
from datetime import UTC, datetime
from typing import Any

import pytest

from freebusy_lite.lite_models import CalendarCollection, CalendarObject


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests that run the aiohttp application")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Remove freebusy environment variables so tests never see real credentials."""
    for name in (
        "ICLOUD_ID",
        "ICLOUD_APP_PASSWORD",
        "PORT",
        "CALDAV_URL",
        "FREEBUSY_HOST",
        "FREEBUSY_STATIC_DIR",
        "FREEBUSY_DEBUG",
        "FREEBUSY_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """
    Return a simple ICS calendar string with a single event.

    Returns:
        ICS string with one event on 2024-03-03 10:00-11:00 UTC
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//freebusy-lite Test//EN
BEGIN:VEVENT
UID:oneoff-001@freebusy.test
DTSTAMP:20240201T090000Z
DTSTART:20240303T100000Z
DTEND:20240303T110000Z
SUMMARY:Dentist
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_weekly() -> str:
    """
    Return an ICS string with an open-ended weekly series.

    Returns:
        ICS string: Thursdays 15:00-16:00 UTC starting 2024-02-01
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//freebusy-lite Test//EN
BEGIN:VEVENT
UID:weekly-001@freebusy.test
DTSTAMP:20240101T090000Z
DTSTART:20240201T150000Z
DTEND:20240201T160000Z
RRULE:FREQ=WEEKLY
SUMMARY:Piano lesson
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_exdate() -> str:
    """
    Return an ICS string with EXDATE (cancelled occurrence).

    Returns:
        ICS string: Mondays 14:00-15:00 UTC, 4 occurrences from 2024-01-15,
        with 2024-01-22 excluded
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//freebusy-lite Test//EN
BEGIN:VEVENT
UID:exdate-001@freebusy.test
DTSTAMP:20240115T130000Z
DTSTART:20240115T140000Z
DTEND:20240115T150000Z
RRULE:FREQ=WEEKLY;BYDAY=MO;COUNT=4
EXDATE:20240122T140000Z
SUMMARY:Weekly Review
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_override() -> str:
    """
    Return an ICS string where one occurrence of a daily series was moved.

    Returns:
        ICS string: daily 09:00-09:30 UTC for 3 days from 2024-01-15; the
        2024-01-16 instance is moved to 13:00-13:30 UTC
    """
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//freebusy-lite Test//EN
BEGIN:VEVENT
UID:daily-001@freebusy.test
DTSTAMP:20240110T090000Z
DTSTART:20240115T090000Z
DTEND:20240115T093000Z
RRULE:FREQ=DAILY;COUNT=3
SUMMARY:Standup
END:VEVENT
BEGIN:VEVENT
UID:daily-001@freebusy.test
DTSTAMP:20240110T090000Z
RECURRENCE-ID:20240116T090000Z
DTSTART:20240116T130000Z
DTEND:20240116T133000Z
SUMMARY:Standup (moved)
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_all_day() -> str:
    """Return an ICS string with a single all-day event on 2024-03-05."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//freebusy-lite Test//EN
BEGIN:VEVENT
UID:allday-001@freebusy.test
DTSTAMP:20240201T090000Z
DTSTART;VALUE=DATE:20240305
SUMMARY:Conference
END:VEVENT
END:VCALENDAR"""


@pytest.fixture
def sample_ics_missing_start() -> str:
    """Return an ICS string whose only VEVENT has no DTSTART."""
    return """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//freebusy-lite Test//EN
BEGIN:VEVENT
UID:broken-001@freebusy.test
DTSTAMP:20240201T090000Z
SUMMARY:Broken
END:VEVENT
END:VCALENDAR"""


# ==================== Fetcher Fixtures ====================


class FakeFetcher:
    """Async fetcher stand-in that counts calls and can be told to fail."""

    def __init__(self, collections: list[CalendarCollection]) -> None:
        self.collections = collections
        self.calls = 0
        self.error: Exception | None = None

    async def __call__(self) -> list[CalendarCollection]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.collections


@pytest.fixture
def make_collection() -> Callable[..., CalendarCollection]:
    """Return a builder for a CalendarCollection holding ICS text objects."""

    def builder(*payloads: Any, display_name: str | None = "Personal") -> CalendarCollection:
        objects = [
            CalendarObject(href=f"/calendars/home/personal/{i}.ics", data=payload)
            for i, payload in enumerate(payloads)
        ]
        return CalendarCollection(
            url="https://caldav.example.com/calendars/home/personal/",
            display_name=display_name,
            objects=objects,
        )

    return builder


@pytest.fixture
def fake_fetcher(
    make_collection: Callable[..., CalendarCollection],
    sample_ics_weekly: str,
    sample_ics_simple: str,
) -> FakeFetcher:
    """Fetcher returning one collection with a weekly series and a one-off event."""
    return FakeFetcher([make_collection(sample_ics_weekly, sample_ics_simple)])


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def utc() -> Callable[..., datetime]:
    """Shorthand for building aware UTC datetimes."""

    def build(*args: int) -> datetime:
        return datetime(*args, tzinfo=UTC)

    return build
