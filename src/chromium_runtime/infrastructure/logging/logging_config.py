"""
Structured logging configuration for chromium-runtime.

Configures structlog on top of the standard logging module, rendering
JSON for log shippers or key=value text for terminals.
"""

import logging
import sys
from typing import Any, Optional

import structlog


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "json" for structured logs, "text" for human-readable
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None, invocation_id: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with optional invocation context.

    Args:
        name: Logger name
        invocation_id: Invocation identifier for tracing

    Returns:
        Configured logger instance
    """
    context: dict[str, Any] = {}
    if invocation_id:
        context["invocation_id"] = invocation_id
    return structlog.get_logger(name, **context)
