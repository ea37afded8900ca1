"""Core logging configuration for anonpickup.

The library logs through standard ``logging`` module loggers. This module
wires those loggers to a handler with one of the package formatters and the
witness redaction filter.
"""

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TextIO

ROOT_LOGGER_NAME = "anonpickup"


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_stdlib(self) -> int:
        """Map to the numeric level used by the logging module."""
        return getattr(logging, self.name)


@dataclass
class LogContext:
    """Log context information attached to records via ``extra``."""

    component: Optional[str] = None
    operation: Optional[str] = None
    request_id: Optional[str] = None
    package_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "component": self.component,
            "operation": self.operation,
            "request_id": self.request_id,
            "package_id": self.package_id,
            "metadata": self.metadata,
        }

    def as_extra(self) -> Dict[str, Any]:
        """Return the context in the shape ``Logger.log(extra=...)`` expects."""
        return {"context": self.to_dict()}


@dataclass
class LogConfig:
    """Log configuration."""

    name: str = ROOT_LOGGER_NAME
    level: LogLevel = LogLevel.INFO
    format_type: str = "json"
    redact_fields: List[str] = field(default_factory=list)
    propagate: bool = False
    stream: Optional[TextIO] = None

    def validate(self) -> None:
        """Validate configuration."""
        if self.format_type not in ("json", "text"):
            raise ValueError(f"Unsupported log format: {self.format_type}")
        if not self.name:
            raise ValueError("Logger name must not be empty")


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger inside the anonpickup namespace."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(config: Optional[LogConfig] = None) -> logging.Logger:
    """Attach a single formatted, redacting handler to the package logger.

    Calling this again replaces the handler installed by the previous call.
    """
    from .filters import RedactionFilter
    from .formatters import JSONFormatter, TextFormatter

    config = config or LogConfig()
    config.validate()

    logger = logging.getLogger(config.name)
    for handler in list(logger.handlers):
        if getattr(handler, "_anonpickup_handler", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(config.stream or sys.stderr)
    handler._anonpickup_handler = True
    if config.format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    handler.addFilter(RedactionFilter(extra_fields=config.redact_fields))

    logger.addHandler(handler)
    logger.setLevel(config.level.to_stdlib())
    logger.propagate = config.propagate
    return logger
