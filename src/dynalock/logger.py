"""Log output for the lock drivers.

The drivers log through ``structlog.stdlib.get_logger(__name__)``, so every
event lands under the ``dynalock`` stdlib logger with the resource identity in
the ``lock`` key. ``new_logger`` decides where and how those events are
rendered.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LOGGER_NAME = "dynalock"


def _renderer(format: str) -> structlog.types.Processor:
    if format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def new_logger(
    level: str = "INFO",
    format: str = "json",
    **context: Any,
) -> structlog.stdlib.BoundLogger:
    """Route driver events to stdout and return a logger for the caller.

    Args:
        level: minimum level name for ``dynalock`` events
        format: "json" or "text"
        context: key/values bound to the returned logger, e.g. ``lock="jobs"``
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    stdlib_logger = logging.getLogger(LOGGER_NAME)
    stdlib_logger.handlers[:] = [handler]
    stdlib_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    stdlib_logger.propagate = False

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            _renderer(format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.stdlib.get_logger(LOGGER_NAME).bind(**context)
