"""Logging configuration using Loguru.

Console and rotating JSON file sinks, with every record tagged by the
request it belongs to and, inside the fan-out, the insight that produced it.
Insights run on worker threads, so the tags are attached with
``logger.contextualize`` inside each worker rather than inherited from the
caller.

Example:
    >>> from prop_insights.logging import setup_logging, get_logger, insight_scope
    >>> setup_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> with insight_scope("last10_hit_rate", request="a1b2c3d4"):
    ...     logger.info("Using {} games", 10)

Status Tags:
    >>> from prop_insights.logging import SUCCESS, FAIL, WARN
    >>> logger.info(f"{SUCCESS} 15 insights in 0.42s")
    >>> logger.warning(f"{WARN} Falling back to season 2023")
    >>> logger.error(f"{FAIL} matchup_history did not finish within 5s")
"""

from __future__ import annotations

import logging
import sys
import time
import uuid
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from loguru import logger

# Color-coded status tags for terminal output
SUCCESS = "\033[92m[SUCCESS]\033[0m"  # Green
FAIL = "\033[91m[FAIL]\033[0m"        # Red
WARN = "\033[93m[WARN]\033[0m"        # Yellow

# Placeholders for records logged outside a request or insight
NO_CONTEXT = "-"
DEFAULT_EXTRA = {"request": NO_CONTEXT, "insight_id": NO_CONTEXT}

# Chatty third-party loggers, raised to WARNING unless level is DEBUG
QUIET_LIBRARIES: tuple[str, ...] = ("sqlalchemy.engine", "sqlalchemy.pool")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request]}</magenta>:<magenta>{extra[insight_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Route stdlib records (SQLAlchemy, typer) into loguru's sinks."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            name=record.name
        ).log(level, record.getMessage())


def setup_logging(
    level: str = "INFO",
    log_dir: str | Path = "logs",
    rotation: str = "1 day",
    retention: str = "30 days",
    serialize: bool = True,
    quiet: Iterable[str] = QUIET_LIBRARIES,
) -> None:
    """Configure application logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for log files.
        rotation: When to rotate log files (e.g., "1 day", "100 MB").
        retention: How long to keep old log files.
        serialize: Whether to write JSON-formatted logs to file. JSON records
            keep ``request`` and ``insight_id`` under ``extra``.
        quiet: Stdlib loggers held at WARNING unless ``level`` is DEBUG.

    Example:
        >>> setup_logging(level="DEBUG", log_dir="logs")
    """
    logger.remove()
    logger.configure(extra=DEFAULT_EXTRA)

    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_path / "prop_insights_{time:YYYY-MM-DD}.log",
        level=level,
        format="{time} | {level: <8} | {extra[request]}:{extra[insight_id]} | {message}",
        rotation=rotation,
        retention=retention,
        serialize=serialize,
        enqueue=True,  # Insights log from worker threads
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    library_level = logging.NOTSET if level.upper() == "DEBUG" else logging.WARNING
    for name in quiet:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> Any:
    """Get a logger instance bound with the given module name."""
    return logger.bind(name=name)


def new_request_id() -> str:
    """Short random id tying together the records of one compose call."""
    return uuid.uuid4().hex[:8]


@contextmanager
def insight_scope(
    insight_id: str, request: str = NO_CONTEXT
) -> Generator[None, None, None]:
    """Tag records from the current thread with the insight and request.

    Logs the start and the elapsed time at DEBUG.
    """
    with logger.contextualize(request=request, insight_id=insight_id):
        start = time.perf_counter()
        logger.debug("Starting {}", insight_id)
        try:
            yield
        finally:
            logger.debug(
                "{} finished in {:.3f}s", insight_id, time.perf_counter() - start
            )


__all__ = [
    "DEFAULT_EXTRA",
    "FAIL",
    "NO_CONTEXT",
    "SUCCESS",
    "WARN",
    "get_logger",
    "insight_scope",
    "logger",
    "new_request_id",
    "setup_logging",
]
