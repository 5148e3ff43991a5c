"""Static file serving for the availability widget."""

from __future__ import annotations

import logging
from pathlib import Path

from aiohttp import web

logger = logging.getLogger(__name__)


def register_static_routes(app: web.Application, static_dir: Path) -> bool:
    """Serve ``index.html`` at ``/`` and the rest of ``static_dir`` beneath it.

    Args:
        app: aiohttp web application
        static_dir: Directory holding the widget files

    Returns:
        True if routes were registered, False if the directory does not exist
    """
    if not static_dir.is_dir():
        logger.debug("Static directory %s not found; static routes disabled", static_dir)
        return False

    index_file = static_dir / "index.html"

    async def serve_index(_request: web.Request) -> web.StreamResponse:
        """Serve the widget entry page."""
        if not index_file.exists():
            logger.error("Static index file not found: %s", index_file)
            return web.Response(text="index.html not found", status=404)
        return web.FileResponse(index_file)

    app.router.add_get("/", serve_index)
    app.router.add_static("/", static_dir, show_index=False)

    logger.debug("Static routes registered for %s", static_dir)
    return True
