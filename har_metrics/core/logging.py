"""Logging for the ``har_metrics`` logger hierarchy.

Modules log through ``logging.getLogger(__name__)``, so every record lands under the
``har_metrics`` logger. The package attaches only a NullHandler on import; applications
that want its records on stderr without configuring logging themselves call
``setup_logging``. The root logger and other libraries' loggers are never touched.
"""

import logging
import sys
from typing import IO, Optional

from har_metrics.config.settings import Settings

PACKAGE_LOGGER = "har_metrics"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_LOG_LEVEL = "INFO"

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class _PackageStreamHandler(logging.StreamHandler):
    """Marks the handler installed by setup_logging so a second call replaces it."""


def setup_logging(
    settings: Optional[Settings] = None, stream: Optional[IO[str]] = None, propagate: bool = False
) -> logging.Logger:
    """Sends ``har_metrics`` records to a stream (stderr by default).

    The level comes from ``LOG_LEVEL``; an unknown value falls back to INFO with a warning
    logged through the configured handler. Calling this again replaces the handler it
    installed before, leaving any handler the application added in place.

    Args:
        settings: Where to read ``LOG_LEVEL`` from. A fresh Settings is used when omitted.
        stream: Destination of the records.
        propagate: Whether records also reach the application's root handlers.

    Returns:
        The configured ``har_metrics`` logger.
    """
    settings = settings or Settings()
    level_name = settings.get_log_level(default=DEFAULT_LOG_LEVEL)
    invalid_level = level_name not in VALID_LOG_LEVELS
    if invalid_level:
        invalid_name, level_name = level_name, DEFAULT_LOG_LEVEL

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        if isinstance(handler, _PackageStreamHandler):
            package_logger.removeHandler(handler)

    handler = _PackageStreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(level_name)
    package_logger.propagate = propagate

    if invalid_level:
        package_logger.warning(
            f"Invalid LOG_LEVEL '{invalid_name}', using {DEFAULT_LOG_LEVEL}. "
            f"Valid levels are: {', '.join(VALID_LOG_LEVELS)}"
        )
    return package_logger
