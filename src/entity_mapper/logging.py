"""Structlog-based logging for entity-mapper.

Events are rendered as JSON lines and handed to the standard library
``entity_mapper`` logger, which writes to stderr. Stdout stays free for
command output such as the extracted JSON.
"""
from __future__ import annotations

from typing import Literal, get_args

import logging
import sys

import structlog

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

ROOT_LOGGER = "entity_mapper"


def level_number(level: str) -> int:
    """Numeric value of a level name; raises ValueError for unknown names."""
    name = level.upper()
    if name not in get_args(LogLevel):
        raise ValueError(f"Unknown log level {level!r}; expected one of {', '.join(get_args(LogLevel))}")
    return getattr(logging, name)


def configure_logging(level: LogLevel | str = "INFO") -> None:
    numeric = level_number(level)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric)
    logging.getLogger(ROOT_LOGGER).setLevel(numeric)
    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = ROOT_LOGGER):
    return structlog.get_logger(name)


configure_logging()
