"""Serverless entry point for freebusy_lite.

Accepts API Gateway style events (REST ``httpMethod`` or HTTP API
``requestContext.http.method``) and returns the proxy response shape. The
service, and with it the raw event cache, is built once per process and reused
across warm invocations.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Optional

from .busy_aggregator import FETCH_FAILED_MESSAGE, FreeBusyService, ServiceResponse
from .config_loader import Config, load_config
from .lite_exceptions import ConfigError
from .middleware.cors import CORS_HEADERS
from .server import build_service

logger = logging.getLogger(__name__)

_service: Optional[FreeBusyService] = None
_service_lock = threading.Lock()


def get_service(config: Optional[Config] = None) -> FreeBusyService:
    """Return the process-wide service, building it on first use.

    The CalDAV client is synchronous and runs in worker threads, so it is safe
    to reuse across invocations even though each one runs its own event loop.

    Raises:
        ConfigError: If the CalDAV credentials are not configured
    """
    global _service
    with _service_lock:
        if _service is None:
            _service = build_service(config or load_config())
            logger.info("Free/busy service initialized")
        return _service


def reset_service() -> None:
    """Drop the cached service so the next invocation rebuilds it."""
    global _service
    with _service_lock:
        _service = None


def _event_method(event: dict[str, Any]) -> str:
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    return str(method or "GET")


def _to_proxy_response(result: ServiceResponse) -> dict[str, Any]:
    headers = {"Content-Type": "application/json"}
    headers.update(CORS_HEADERS)
    return {
        "statusCode": result.status,
        "headers": headers,
        "body": json.dumps(result.body),
    }


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:  # noqa: ARG001
    """Handle one free/busy invocation.

    Args:
        event: API Gateway proxy event
        context: Runtime context (unused)

    Returns:
        Proxy response with statusCode, headers and a JSON body
    """
    method = _event_method(event)
    query = event.get("queryStringParameters") or {}

    try:
        service = get_service()
    except ConfigError as e:
        logger.error("Service not configured: %s", e)
        return _to_proxy_response(
            ServiceResponse(500, {"error": FETCH_FAILED_MESSAGE, "detail": str(e)})
        )

    result = asyncio.run(service.handle_request(method, query))
    logger.debug("Invocation %s answered %d", method, result.status)
    return _to_proxy_response(result)
