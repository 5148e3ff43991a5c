"""Route modules for the freebusy_lite server."""

from .api_routes import register_api_routes
from .static_routes import register_static_routes

__all__ = [
    "register_api_routes",
    "register_static_routes",
]
