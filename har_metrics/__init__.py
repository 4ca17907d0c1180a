"""Request/response logging to a HAR metrics collector."""

import logging

from .config import MetricsOptions, Settings
from .core import CapturedRequest, CapturedResponse
from .core.logging import setup_logging
from .delivery import MetricsClient
from .exceptions import BodyDecodeError, ConfigurationError, DeliveryError, FilterConfigError, MetricsError
from .har import GroupIdentity, LogEntry, PayloadAssembler, RedactionConfig
from .middleware import MetricsMiddleware

__all__ = [
    "BodyDecodeError",
    "CapturedRequest",
    "CapturedResponse",
    "ConfigurationError",
    "DeliveryError",
    "FilterConfigError",
    "GroupIdentity",
    "LogEntry",
    "MetricsClient",
    "MetricsError",
    "MetricsMiddleware",
    "MetricsOptions",
    "PayloadAssembler",
    "RedactionConfig",
    "Settings",
    "setup_logging",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
