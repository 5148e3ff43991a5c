"""freebusy_lite HTTP server.

Builds the aiohttp application around one FreeBusyService (CalDAV fetcher,
raw event cache and expander) and runs it until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Optional

from aiohttp import web

from .busy_aggregator import FreeBusyService
from .caldav_fetcher import CalDAVFetcher
from .config_loader import Config
from .event_cache import RawEventCache
from .middleware import correlation_id_middleware, cors_middleware
from .routes import register_api_routes, register_static_routes

logger = logging.getLogger(__name__)


def build_fetcher(config: Config) -> CalDAVFetcher:
    """Create the CalDAV fetcher for the configured account."""
    return CalDAVFetcher(config.caldav_url, config.caldav_username, config.caldav_password)


def build_service(config: Config, fetcher: Optional[CalDAVFetcher] = None) -> FreeBusyService:
    """Wire fetcher, cache and service for one CalDAV account."""
    if fetcher is None:
        fetcher = build_fetcher(config)
    cache = RawEventCache(fetcher.fetch_collections)
    return FreeBusyService(cache)


def _make_app(config: Config, service: FreeBusyService) -> web.Application:
    """Create the aiohttp application with API and static routes."""
    app = web.Application(middlewares=[correlation_id_middleware, cors_middleware])

    register_api_routes(app, service)
    register_static_routes(app, Path(config.static_dir).resolve())

    return app


async def _close_fetcher(fetcher: CalDAVFetcher) -> None:
    try:
        await asyncio.to_thread(fetcher.close)
    except Exception as e:
        logger.warning("Error closing CalDAV client: %s", e)


async def _serve(config: Config) -> None:
    """Run the server until signalled to stop."""
    stop_event = asyncio.Event()

    fetcher = build_fetcher(config)
    service = build_service(config, fetcher)
    app = _make_app(config, service)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host=config.server_bind, port=config.server_port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to bind %s:%d", config.server_bind, config.server_port)
        await runner.cleanup()
        await _close_fetcher(fetcher)
        raise
    logger.info("Server started on %s:%d", config.server_bind, config.server_port)

    loop = asyncio.get_running_loop()

    def _on_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")

    await runner.cleanup()
    await _close_fetcher(fetcher)

    logger.info("Server shutdown complete")


def start_server(config: Config) -> None:
    """Start the asyncio event loop and HTTP server.

    Blocks the calling thread until a SIGINT/SIGTERM is received.
    """
    from .lite_logging import configure_lite_logging

    configure_lite_logging(debug_mode=config.debug_logging)
    logger.debug("Starting with %r", config)

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
