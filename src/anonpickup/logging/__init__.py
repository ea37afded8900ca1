"""Logging setup for anonpickup.

Modules log through ``logging.getLogger(__name__)``; applications call
``setup_logging`` once to choose a format and install witness redaction.
"""

from .core import LogConfig, LogContext, LogLevel, get_logger, setup_logging
from .filters import ComponentFilter, RedactionFilter
from .formatters import JSONFormatter, TextFormatter

__all__ = [
    "ComponentFilter",
    "JSONFormatter",
    "LogConfig",
    "LogContext",
    "LogLevel",
    "RedactionFilter",
    "TextFormatter",
    "get_logger",
    "setup_logging",
]
