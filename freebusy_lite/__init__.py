"""freebusy_lite - busy/free interval service for a single CalDAV account.

The package exposes a small asyncio HTTP API (``GET /api/freebusy``) and a
serverless handler that share one core: a TTL cache of extracted calendar
events plus a recurrence expander that turns them into opaque busy intervals.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized console handler on the root logger when none is present
    and sets the root level. The FREEBUSY_DEBUG environment variable (truthy values:
    "1", "true", "yes", "on") forces DEBUG verbosity regardless of ``level_name``.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("FREEBUSY_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message  (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the freebusy_lite HTTP server.

    Loads configuration from the environment (and a local ``.env`` file), applies
    an optional ``--port`` override from parsed CLI args and blocks until the
    server receives SIGINT/SIGTERM.

    Raises:
        ConfigError: If the CalDAV credentials are not configured.
    """
    from .config_loader import load_config
    from .server import start_server

    config = load_config()

    port_override = getattr(args, "port", None) if args is not None else None
    if port_override is not None:
        config.server_port = int(port_override)

    _init_logging(config.log_level)
    start_server(config)
