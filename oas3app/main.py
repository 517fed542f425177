"""
oas3-app: Service Entry Point
==============================

What:  Builds the assembled application from environment settings.
How:   create_app() is a uvicorn factory:
           uvicorn oas3app.main:create_app --factory
       or run `python -m oas3app`, which uses the configured host and port.

Startup:
    1. Configure logging (root logger, stdout)
    2. Validate required settings (fail fast on a missing definition path)
    3. Assemble the application with AppConfig
"""

import logging
import sys
from typing import Optional

from starlette.applications import Starlette

from oas3app.assembler import AppConfig
from oas3app.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger for the service process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Access log records arrive through the "oas3app.access" logger.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # The pipeline writes its own access log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def create_app(config: Optional[Settings] = None) -> Starlette:
    """Assemble the application described by the OAS3_* settings."""
    config = config or default_settings
    setup_logging(config.log_level)
    config.validate_required()

    app = AppConfig(config.definition_path, config.to_app_options()).get_app()
    logger.info("Serving %s on http://%s:%d", config.definition_path, config.host, config.port)
    return app
