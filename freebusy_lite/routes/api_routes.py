"""JSON API routes for freebusy_lite."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from ..busy_aggregator import FreeBusyService

logger = logging.getLogger(__name__)


def register_api_routes(app: web.Application, service: FreeBusyService) -> None:
    """Register the free/busy and health endpoints.

    ``/api/freebusy`` is registered for every method so that the service can
    answer non-GET requests with its own 405 body.

    Args:
        app: aiohttp web application
        service: Core free/busy service shared by all requests
    """

    async def freebusy(request: web.Request) -> web.Response:
        """Return busy intervals for the ``start``/``end`` query window."""
        result = await service.handle_request(request.method, request.query)
        return web.json_response(result.body, status=result.status)

    async def health_check(_request: Any) -> web.Response:
        """Report cache state for monitoring."""
        return web.json_response(service.health())

    app.router.add_route("*", "/api/freebusy", freebusy)
    app.router.add_get("/api/health", health_check)

    logger.debug("API routes registered")
