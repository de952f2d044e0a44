"""Logging configuration for soraql application."""
from __future__ import annotations
import logging
import sys
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DEFAULT_LEVEL = 'WARNING'

# Level restored when debug is switched off
_base_level = logging.WARNING


def configure_logging(level: str = DEFAULT_LEVEL,
                      log_file: Optional[str] = None,
                      format_str: Optional[str] = None) -> None:
    """Configure logging with consistent format and options.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
        format_str: Optional custom format string
    """
    global _base_level
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    log_format = format_str or DEFAULT_FORMAT
    handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(logging.Formatter(log_format))
            handlers.append(file_handler)
        except OSError as e:
            print(f"Warning: Could not configure log file: {e}", file=sys.stderr)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    debug = numeric_level <= logging.DEBUG
    _base_level = logging.WARNING if debug else numeric_level
    set_debug(debug)


def set_debug(enabled: bool) -> None:
    """Switch the root logger between DEBUG and its configured level."""
    logging.getLogger().setLevel(logging.DEBUG if enabled else _base_level)
    # HTTP connection chatter only when debugging
    logging.getLogger("urllib3").setLevel(logging.DEBUG if enabled else logging.WARNING)
