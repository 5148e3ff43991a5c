"""CalDAV account discovery and calendar object download.

The blocking ``caldav`` client runs in worker threads so the event loop keeps
serving requests while a refresh is in flight. The principal's calendars are
listed first, then each calendar's VEVENT objects are downloaded concurrently.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Any, Optional

import caldav
from caldav.lib.error import AuthorizationError, DAVError

from .lite_exceptions import CalDAVAuthError, CalDAVFetchError
from .lite_models import CalendarCollection, CalendarObject

logger = logging.getLogger(__name__)

DEFAULT_CALDAV_URL = "https://caldav.icloud.com/"

ClientFactory = Callable[..., Any]


class CalDAVFetcher:
    """Fetch every calendar collection of one CalDAV account.

    The fetcher is the upstream collaborator of the event cache. Failures are
    raised as CalDAVFetchError (CalDAVAuthError for rejected credentials); a
    fetch either returns the complete account or fails.
    """

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        client_factory: ClientFactory = caldav.DAVClient,
        max_concurrency: int = 3,
    ) -> None:
        """Initialize the fetcher.

        Args:
            server_url: CalDAV server root (e.g. https://caldav.icloud.com/)
            username: Account identifier
            password: Application-scoped password
            client_factory: Builds the DAV client; called with url, username, password
            max_concurrency: Maximum calendars downloaded at the same time
        """
        self.server_url = server_url
        self._username = username
        self._password = password
        self._client_factory = client_factory
        self._semaphore_size = max(1, max_concurrency)
        self._client: Optional[Any] = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> Any:
        """Return the DAV client, creating it on first use."""
        with self._client_lock:
            if self._client is None:
                self._client = self._client_factory(
                    url=self.server_url, username=self._username, password=self._password
                )
                logger.debug("Created CalDAV client for %s", self.server_url)
            return self._client

    def close(self) -> None:
        """Close the DAV client's HTTP session, if one was opened."""
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None and hasattr(client, "close"):
            client.close()
            logger.debug("Closed CalDAV client")

    async def fetch_collections(self) -> list[CalendarCollection]:
        """Discover the account's calendars and download their objects.

        Returns:
            Collections in discovery order, each with its calendar objects

        Raises:
            CalDAVAuthError: If the server rejects the credentials
            CalDAVFetchError: On transport, protocol or discovery failure
        """
        try:
            return await self._fetch_all()
        except AuthorizationError as e:
            logger.warning("CalDAV authentication failed: %s", e)
            # Rebuilt with the current credentials on the next fetch.
            self.close()
            raise CalDAVAuthError(f"CalDAV authentication failed: {e}") from e
        except (DAVError, OSError) as e:
            raise CalDAVFetchError(f"CalDAV fetch from {self.server_url} failed: {e}") from e

    async def _fetch_all(self) -> list[CalendarCollection]:
        calendars = await asyncio.to_thread(self._list_calendars)
        logger.debug("Discovered %d calendar collections", len(calendars))

        semaphore = asyncio.Semaphore(self._semaphore_size)

        async def _load(calendar: Any) -> CalendarCollection:
            async with semaphore:
                return await asyncio.to_thread(self._load_calendar, calendar)

        loaded = await asyncio.gather(*(_load(c) for c in calendars))
        logger.info(
            "Fetched %d objects from %d calendars",
            sum(len(c.objects) for c in loaded),
            len(loaded),
        )
        return list(loaded)

    def _list_calendars(self) -> list[Any]:
        principal = self._get_client().principal()
        return list(principal.calendars())

    @staticmethod
    def _load_calendar(calendar: Any) -> CalendarCollection:
        objects = [
            CalendarObject(href=str(event.url), data=event.data) for event in calendar.events()
        ]
        return CalendarCollection(url=str(calendar.url), display_name=calendar.name, objects=objects)
