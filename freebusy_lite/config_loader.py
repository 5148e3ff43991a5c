"""freebusy_lite.config_loader

Environment-based configuration for freebusy_lite.

- Reads a ``.env`` file from the working directory with python-dotenv without
  overriding variables that are already set.
- Exposes a typed dataclass ``Config`` and a ``load_config()`` helper.
- The CalDAV account identifier and application password are required.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .caldav_fetcher import DEFAULT_CALDAV_URL
from .lite_exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000


@dataclass
class Config:
    """Typed configuration for freebusy_lite.

    Fields:
        caldav_username: CalDAV account identifier (ICLOUD_ID)
        caldav_password: application-scoped password (ICLOUD_APP_PASSWORD)
        caldav_url: CalDAV server root
        server_bind: host to bind the HTTP server to
        server_port: port for the HTTP server
        static_dir: directory of widget files served at / (ignored if missing)
        log_level: logging level name
        debug_logging: enable DEBUG for freebusy_lite modules
    """

    caldav_username: str
    caldav_password: str
    caldav_url: str = DEFAULT_CALDAV_URL
    server_bind: str = "0.0.0.0"  # nosec: B104 - intentional default for container deployments
    server_port: int = DEFAULT_PORT
    static_dir: str = "public"
    log_level: str = "INFO"
    debug_logging: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Config:
        """Create Config from environment variables.

        Recognizes:
          - ICLOUD_ID, ICLOUD_APP_PASSWORD (required)
          - PORT (optional, default 3000)
          - CALDAV_URL (optional, default iCloud)
          - FREEBUSY_HOST, FREEBUSY_STATIC_DIR, FREEBUSY_LOG_LEVEL, FREEBUSY_DEBUG

        Raises:
            ConfigError: If either credential is missing or empty
        """
        env = os.environ if environ is None else environ

        username = (env.get("ICLOUD_ID") or "").strip()
        password = (env.get("ICLOUD_APP_PASSWORD") or "").strip()
        if not username or not password:
            raise ConfigError("ICLOUD_ID or ICLOUD_APP_PASSWORD not set")

        data: dict[str, Any] = {
            "caldav_username": username,
            "caldav_password": password,
            "caldav_url": env.get("CALDAV_URL"),
            "server_bind": env.get("FREEBUSY_HOST"),
            "server_port": env.get("PORT"),
            "static_dir": env.get("FREEBUSY_STATIC_DIR"),
            "log_level": env.get("FREEBUSY_LOG_LEVEL"),
            "debug_logging": env.get("FREEBUSY_DEBUG"),
        }
        return cls.from_dict({k: v for k, v in data.items() if v not in (None, "")})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Create Config from a plain mapping, applying defaults and coercion.

        Non-numeric ports fall back to the default with a warning.
        """
        raw_port = data.get("server_port", DEFAULT_PORT)
        try:
            port = int(raw_port)
        except (TypeError, ValueError):
            logger.warning("Config server_port=%r is not an int; using default %d", raw_port, DEFAULT_PORT)
            port = DEFAULT_PORT

        debug_raw = data.get("debug_logging", False)
        if isinstance(debug_raw, str):
            debug = debug_raw.strip().lower() in ("1", "true", "yes", "on")
        else:
            debug = bool(debug_raw)

        return cls(
            caldav_username=str(data["caldav_username"]),
            caldav_password=str(data["caldav_password"]),
            caldav_url=str(data.get("caldav_url", DEFAULT_CALDAV_URL)),
            server_bind=str(data.get("server_bind", "0.0.0.0")),  # nosec: B104
            server_port=port,
            static_dir=str(data.get("static_dir", "public")),
            log_level=str(data.get("log_level", "INFO")).upper(),
            debug_logging=debug,
        )

    def __repr__(self) -> str:
        # Keep the password out of log output.
        return (
            f"Config(caldav_username={self.caldav_username!r}, caldav_password='***', "
            f"caldav_url={self.caldav_url!r}, server_bind={self.server_bind!r}, "
            f"server_port={self.server_port}, static_dir={self.static_dir!r}, "
            f"log_level={self.log_level!r}, debug_logging={self.debug_logging})"
        )


def load_config(env_file: Optional[str] = None) -> Config:
    """Load configuration from the environment, after reading a ``.env`` file.

    Args:
        env_file: Optional path to the dotenv file (default ./.env)

    Returns:
        Config instance

    Raises:
        ConfigError: If the CalDAV credentials are not configured
    """
    path = Path(env_file) if env_file else Path.cwd() / ".env"
    if path.exists():
        load_dotenv(path, override=False)
        logger.debug("Loaded .env defaults from %s", path)

    cfg = Config.from_env()
    logger.debug("Configuration values: %r", cfg)
    return cfg
