"""
Central logging configuration for freebusy_lite.

Quietens verbose third-party loggers (aiohttp access logs, caldav, urllib3, icalendar)
while keeping WARNING/ERROR/INFO output for diagnostics, and attaches the
request correlation id to every record.
"""

import logging
import os
from typing import Optional


class CorrelationIdFilter(logging.Filter):
    """Add the current request's correlation ID to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        from .middleware import get_request_id

        record.request_id = get_request_id()
        return True


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for freebusy_lite.

    Args:
        debug_mode: Whether to enable debug logging for freebusy_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        FREEBUSY_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        FREEBUSY_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("FREEBUSY_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("FREEBUSY_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    correlation_filter = CorrelationIdFilter()

    # Only add a handler if none exist (preserve the colorized setup from __init__.py)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s")
        )
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(correlation_filter)

    logger_config: dict[str, int] = {
        "aiohttp.access": logging.WARNING,
        "aiohttp.server": logging.WARNING,
        "aiohttp.web": logging.INFO,
        "caldav": logging.WARNING,
        "urllib3": logging.WARNING,
        "asyncio": logging.WARNING,
        "icalendar": logging.INFO,
    }

    lite_level = logging.DEBUG if final_debug else logging.INFO
    logger_config["freebusy_lite"] = lite_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for freebusy_lite modules")
    else:
        root_logger.info("Production logging configuration applied")

