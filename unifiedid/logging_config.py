"""
Structured logging configuration using structlog.

Produces JSON logs in production, human-readable colored logs in development.
Nothing is configured on import; applications call ``setup_logging`` once.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import EnvSettings, SDKConfig


def resolve_log_level(log_level: Optional[str] = None, config: Optional[SDKConfig] = None) -> str:
    """Explicit level first, then ``config.log_level``, then ``UNIFIEDID_LOG_LEVEL``."""
    if log_level:
        return log_level
    if config is not None:
        return config.log_level
    return EnvSettings().log_level


def setup_logging(log_level: Optional[str] = None, config: Optional[SDKConfig] = None) -> None:
    """Configure structlog for structured JSON logging.

    Args:
        log_level: Override log level (default: from ``config`` or the environment).
            DEBUG switches to the console renderer.
        config: SDK configuration whose ``log_level`` is used when no override is given.
    """
    level = getattr(logging, resolve_log_level(log_level, config).upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    # Shared processors for both structlog and stdlib
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        # Development: colored console output
        renderer = structlog.dev.ConsoleRenderer()
    else:
        # Production: JSON lines
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib logging through structlog's formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Request lines from the HTTP stack carry URLs; keep them out of INFO
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
