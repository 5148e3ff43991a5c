"""Middleware components for request processing.

Correlation IDs for request tracing and permissive CORS headers so the
availability widget can call the API from another origin.
"""

from .correlation_id import correlation_id_middleware, get_request_id
from .cors import cors_middleware

__all__ = ["correlation_id_middleware", "cors_middleware", "get_request_id"]
