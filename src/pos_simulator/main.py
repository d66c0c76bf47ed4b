"""Application bootstrap.

Loads settings, configures logging and serves the API with uvicorn.
"""

from __future__ import annotations

import logging
from typing import Any

import uvicorn

from .api.app import create_app
from .core.config import load_settings
from .observability.logger import setup_logging

logger = logging.getLogger(__name__)


def run(
    config_path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> None:
    """Main entry point. Load config, wire the app, serve until interrupted."""

    # 1. Load settings
    settings = load_settings(config_path=config_path, overrides=overrides)

    # 2. Set up logging
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
    )

    # 3. Build the app (validates webhook settings)
    app = create_app(settings)

    logger.info(
        "Starting POS simulator on %s:%d (venue=%s)",
        settings.host, settings.port, settings.venue_id,
    )

    # 4. Serve; logging is already routed through structlog
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
