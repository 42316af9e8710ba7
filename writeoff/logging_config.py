"""Structured logging configuration using structlog.

Logs go to stderr so they never interleave with rich output or with
artifacts piped from stdout.
"""

import logging
import sys

import structlog

# stdlib loggers of the HTTP clients under the provider SDKs
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def setup_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog for one CLI run.

    Args:
        log_level: Python log level name (DEBUG, INFO, WARNING, ERROR).
        json_logs: One JSON object per line instead of colored console text.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    if json_logs:
        tail = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        tail = [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, *tail],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # SDK request logs stay at WARNING or above
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
