"""Structured logging foundation for the regime engine.

Provides JSON logging (prod) or colored console (dev) via structlog.
Includes an audit trail logger for regime transitions.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, cast

import structlog


def _configure_structlog() -> None:
    """Configure structlog based on REGIME_ENV."""
    env = os.environ.get("REGIME_ENV", "development")
    log_level_name = os.environ.get("REGIME_LOG_LEVEL", "INFO").upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if env == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


_CONFIGURED = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named logger instance.

    Args:
        name: Logger name (typically module __name__).

    Returns:
        Configured structlog BoundLogger.
    """
    global _CONFIGURED
    if not _CONFIGURED:
        _configure_structlog()
        _CONFIGURED = True

    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


def get_audit_logger() -> structlog.stdlib.BoundLogger:
    """Get the audit trail logger for regime transitions.

    All audit events are logged with event_type for downstream filtering.
    """
    return get_logger("regime_engine.audit")


def log_regime_event(
    symbol: str,
    environment: str,
    strategy: str,
    **kwargs: Any,
) -> None:
    """Log a regime transition to the audit trail.

    Args:
        symbol: Symbol whose regime changed.
        environment: Newly classified market environment.
        strategy: Recommended strategy for the new environment.
        **kwargs: Additional context (previous environment, atr, adx, etc).
    """
    logger = get_audit_logger()
    logger.info(
        "regime_changed",
        event_type="audit",
        symbol=symbol,
        environment=environment,
        strategy=strategy,
        **kwargs,
    )
