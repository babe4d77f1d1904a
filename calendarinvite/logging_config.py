"""
Central logging configuration for calendarinvite.

Keeps third-party parser chatter out of the console while leaving
calendarinvite's own INFO/WARNING diagnostics visible. Debug output can be
forced through the environment for troubleshooting.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Third-party loggers that are too verbose at DEBUG
_NOISY_LOGGERS: dict[str, int] = {
    "icalendar": logging.WARNING,
    "asyncio": logging.WARNING,
}

_PACKAGE_LOGGERS = [
    "calendarinvite",
    "calendarinvite.serializer",
    "calendarinvite.lifecycle",
    "calendarinvite.store",
    "calendarinvite.service",
]


def _env_debug() -> bool:
    return os.getenv("CALENDARINVITE_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(
    level: Optional[str] = None,
    debug: bool = False,
    force_debug: Optional[bool] = None,
) -> None:
    """
    Configure root and package log levels.

    Args:
        level: Root level name (e.g. from settings); INFO when None or unknown
        debug: Whether to enable DEBUG for calendarinvite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALENDARINVITE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALENDARINVITE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug():
        final_debug = True
    else:
        final_debug = debug

    root_level = logging.INFO
    if isinstance(level, str) and level.upper() in _VALID_LEVELS:
        root_level = getattr(logging, level.upper())
    if final_debug:
        root_level = logging.DEBUG

    env_log_level = os.getenv("CALENDARINVITE_LOG_LEVEL", "").strip().upper()
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist to avoid duplicate output
    if not root_logger.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root_logger.addHandler(handler)

    logger_config = dict(_NOISY_LOGGERS)
    package_level = logging.DEBUG if final_debug else logging.NOTSET
    for name in _PACKAGE_LOGGERS:
        logger_config[name] = package_level

    for logger_name, logger_level in logger_config.items():
        logging.getLogger(logger_name).setLevel(logger_level)

    logging.getLogger(__name__).debug(
        "Logging initialized at level %s (debug=%s)", logging.getLevelName(root_level), final_debug
    )


def reset_logging_to_debug() -> None:
    """Reset the root logger and suppressed third-party loggers to DEBUG."""
    logging.getLogger().setLevel(logging.DEBUG)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)
    logging.getLogger(__name__).info("All loggers reset to DEBUG level for troubleshooting")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["calendarinvite", *_NOISY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
