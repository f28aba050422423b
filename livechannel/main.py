#!/usr/bin/env python3
"""
Server entry point: logging, settings, persisted config, then uvicorn.
"""

from __future__ import annotations

import logging
import sys

import uvicorn

from .api.app import create_app
from .context import AppContext
from .errors import ConfigError
from .settings import Settings

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main() -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    settings.hls_root.mkdir(parents=True, exist_ok=True)
    context = AppContext.from_settings(settings)
    try:
        context.reload_config()
    except ConfigError as exc:
        LOGGER.error("%s", exc)
        return 1

    LOGGER.info("HLS output directory: %s", settings.hls_root)
    LOGGER.info("Stream available at http://%s:%d/stream/tv", settings.host, settings.port)
    uvicorn.run(create_app(context), host=settings.host, port=settings.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
