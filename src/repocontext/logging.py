"""
Logging Configuration for RepoContext.

Centralized logging setup shared by the CLI, the extraction pipeline and
the MCP server:
- Rich console output on stderr (stdout belongs to the MCP stdio transport)
- Optional daily log file with structured key=value suffixes

Usage:
    from repocontext.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Extraction started", extra={"repository_id": repo_id})

Configuration:
    LOG_LEVEL controls verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    REPOCONTEXT_LOG_TO_FILE=0 disables the file handler.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler


DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LOG_DIR = Path.home() / ".repocontext" / "logs"

_STANDARD_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """
    Formatter that appends ``extra=`` fields as ``key=value`` pairs.

    Example output:
        2026-03-02 10:30:45 | INFO     | repocontext.services.extraction |
        architecture completed | repository_id=8c1f... | items=3
    """

    def format(self, record: logging.LogRecord) -> str:
        base_message = super().format(record)

        extra_fields = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRIBUTES
        ]

        if extra_fields:
            return f"{base_message} | {' | '.join(extra_fields)}"
        return base_message


_loggers_initialized = False
_file_handler: Optional[logging.FileHandler] = None


def setup_logging(
    log_level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_dir: Optional[Path] = None,
    use_rich_console: bool = True,
) -> None:
    """
    Attach the console and file handlers to the "repocontext" logger.

    Only the first call has an effect.

    Args:
        log_level: Level name; falls back to LOG_LEVEL, then INFO.
        log_to_file: Write a daily file under log_dir. Falls back to
                     REPOCONTEXT_LOG_TO_FILE (on unless set to "0").
        log_dir: Where daily files go, ~/.repocontext/logs/ by default.
        use_rich_console: RichHandler on stderr instead of plain key=value lines.
    """
    global _loggers_initialized, _file_handler

    if _loggers_initialized:
        return

    level_str = log_level or os.environ.get("LOG_LEVEL", DEFAULT_LOG_LEVEL)
    level = getattr(logging, level_str.upper(), logging.INFO)

    if log_to_file is None:
        log_to_file = os.environ.get("REPOCONTEXT_LOG_TO_FILE", "1") != "0"

    root_logger = logging.getLogger("repocontext")
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if use_rich_console:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(StructuredFormatter(LOG_FORMAT, LOG_DATE_FORMAT))

    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_to_file:
        log_directory = log_dir or DEFAULT_LOG_DIR
        try:
            log_directory.mkdir(parents=True, exist_ok=True)
            log_file = log_directory / f"repocontext-{datetime.now():%Y-%m-%d}.log"
            _file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError:
            # Read-only home directories still get console logging
            _file_handler = None
        else:
            _file_handler.setFormatter(StructuredFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
            _file_handler.setLevel(level)
            root_logger.addHandler(_file_handler)

    _loggers_initialized = True

    root_logger.debug(
        "RepoContext logging initialized",
        extra={"log_level": level_str, "log_to_file": _file_handler is not None},
    )


def get_logger(name: str) -> logging.Logger:
    """
    Module logger, configuring handlers on first use.

    Example:
        logger = get_logger(__name__)
        logger.warning("File skipped", extra={
            "file_path": "Order.java",
            "reason": "parse_error",
        })
    """
    if not _loggers_initialized:
        setup_logging()

    return logging.getLogger(name)


# Stage timing helpers used by the extractors and services

def log_operation_start(
    logger: logging.Logger,
    operation: str,
    **context: Any
) -> datetime:
    """Log "<operation> started" and return the clock reading for log_operation_end."""
    logger.info(f"{operation} started", extra=context)
    return datetime.now()


def log_operation_end(
    logger: logging.Logger,
    operation: str,
    start_time: datetime,
    success: bool = True,
    **context: Any
) -> float:
    """
    Log "<operation> completed" (or "failed" at ERROR level) with the
    elapsed seconds, and return them.
    """
    duration = (datetime.now() - start_time).total_seconds()
    status = "completed" if success else "failed"

    log_method = logger.info if success else logger.error
    log_method(
        f"{operation} {status}",
        extra={"duration_seconds": round(duration, 3), **context}
    )

    return duration
