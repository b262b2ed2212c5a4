"""
Logging configuration for chartbind.

Two destinations:
  - File: always DEBUG level, one log file per session in <data_dir>/logs/
  - Console: DEBUG when debug mode is on, WARNING+ otherwise
  - Format: "timestamp | level | name | chart | message"
  - Config console_format options:
    - "simple": (default) bare messages for DEBUG/INFO, [LEVEL] prefix for WARNING+
    - "full":   same structured format as the file handler
    - "clean":  no console output at all (file logging still active)

Records can carry a tag via ``extra=tagged("x")`` so that handlers added by
an embedding application can pick out categories (deprecations, fetches).
"""

import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional

import config

LOGGER_NAME = "chartbind"


def tagged(tag: str) -> dict:
    """Return ``extra`` dict for logger calls: ``logger.debug("...", extra=tagged("x"))``."""
    return {"log_tag": tag}


# Module-level state (shared across re-inits)
_chart_filter: Optional["_ChartFilter"] = None
_console_handler: Optional[logging.Handler] = None
_current_log_file: Optional[Path] = None


class _ChartFilter(logging.Filter):
    """Injects the active chart type into every log record."""

    def __init__(self) -> None:
        super().__init__()
        self.chart = ""

    def filter(self, record: logging.LogRecord) -> bool:
        record.chart = self.chart or "-"
        if not hasattr(record, "log_tag"):
            record.log_tag = ""
        return True


class _ConsoleFormatter(logging.Formatter):
    """Console formatter: shows [LEVEL] prefix only for WARNING and above."""

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return f"  [{record.levelname}] {record.getMessage()}"
        return f"  {record.getMessage()}"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure logging for chartbind.

    Args:
        verbose: If True, show DEBUG level on console; otherwise WARNING+ only

    Returns:
        Configured logger instance
    """
    global _chart_filter, _console_handler, _current_log_file
    log_dir = config.get_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture everything, filter at handler level

    # Clear existing handlers (in case of re-init)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    if _chart_filter is None:
        _chart_filter = _ChartFilter()
        logger.addFilter(_chart_filter)

    session_timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    log_file = log_dir / f"chartbind_{session_timestamp}.log"
    _current_log_file = log_file
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(chart)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(file_format)
    logger.addHandler(file_handler)

    console_format = config.get("console_format", "simple")
    _console_handler = None
    if console_format != "clean":
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        if console_format == "full":
            console_handler.setFormatter(file_format)
        else:
            console_handler.setFormatter(_ConsoleFormatter())
        logger.addHandler(console_handler)
        _console_handler = console_handler

    logger.debug(f"Logging to {log_file}")
    return logger


def get_logger() -> logging.Logger:
    """Get the chartbind logger instance.

    Returns:
        The chartbind logger (creates with defaults if not configured)
    """
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        return setup_logging(verbose=False)
    return logger


def set_debug(enabled: bool) -> None:
    """Toggle DEBUG output on the console handler."""
    get_logger()
    if _console_handler is not None:
        _console_handler.setLevel(logging.DEBUG if enabled else logging.WARNING)


def set_chart(chart_type: str) -> None:
    """Set the chart type included in subsequent log lines."""
    global _chart_filter
    if _chart_filter is None:
        _chart_filter = _ChartFilter()
        logging.getLogger(LOGGER_NAME).addFilter(_chart_filter)
    _chart_filter.chart = chart_type


def get_current_log_path() -> Optional[Path]:
    return _current_log_file


def log_error(
    message: str,
    exc: Optional[BaseException] = None,
    context: Optional[dict] = None,
) -> None:
    """Log an error with full details including stack trace.

    Args:
        message: Error description
        exc: Optional exception to include stack trace from
        context: Optional dict of additional context (hook name, url, etc.)
    """
    logger = get_logger()

    lines = [message]

    if context:
        lines.append("Context:")
        for key, value in context.items():
            lines.append(f"  {key}: {value}")

    if exc is not None:
        lines.append(f"Exception type: {type(exc).__name__}")
        lines.append(f"Exception message: {exc}")
        lines.append("Stack trace:")
        lines.append("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))

    logger.error("\n".join(lines), extra=tagged("error"))
