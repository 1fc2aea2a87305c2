"""
structlog setup for depsync.

Every skip, fallback and degradation in the engine is emitted as a
structured event. JSON lines are the default so CI logs stay greppable.
"""

import logging
from typing import Any

import structlog

# Libraries that log each request at INFO through the standard library.
NOISY_LOGGERS = ("httpx", "httpcore", "github")


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the current process.

    Bound context variables (such as the group being synchronized) are
    merged into every event.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, console rendering otherwise
    """
    level = log_level.upper()
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
