"""
Logging for the service.

Modules log through ``logging.getLogger(__name__)``, so every logger in the
package hangs off the ``todo_service`` logger configured here. Setup is
idempotent: create_app() and the uvicorn entrypoint may both call it.
"""

import logging
import sys
from typing import Optional

from todo_service.config import Settings, get_settings

LOGGER_NAME = "todo_service"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-request access lines come from our own middleware, SQL from debug echo
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx")


def _level(settings: Settings) -> int:
    level = logging.getLevelName(settings.log_level.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Configure the todo_service logger tree from settings"""
    settings = settings or get_settings()
    service_logger = logging.getLogger(LOGGER_NAME)
    service_logger.setLevel(_level(settings))

    handler = next(
        (h for h in service_logger.handlers if getattr(h, "name", None) == LOGGER_NAME),
        None
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(LOGGER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        service_logger.addHandler(handler)
        service_logger.propagate = False

    noisy_level = logging.INFO if settings.debug else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    return service_logger
