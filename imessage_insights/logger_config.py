"""
Logging configuration for iMessage Insights.

Sets up logging with dictConfig so it can be reconfigured at runtime
without disabling loggers other libraries (uvicorn) have already created.

Environment Variables:
    LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO if not set or invalid.

Usage:
    from imessage_insights.logger_config import setup_logging
    setup_logging()  # Uses LOG_LEVEL env var, defaults to INFO

    # Unmatched handles are logged at DEBUG by the resolver; surface them
    # without turning on DEBUG everywhere:
    setup_logging(debug_loggers=["imessage_insights.resolver"])
"""

import logging
import logging.config
import os
from typing import Iterable, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_log_level() -> int:
    """
    Get log level from LOG_LEVEL environment variable.

    Supports: DEBUG, INFO, WARNING, ERROR, CRITICAL (case-insensitive).
    Defaults to INFO if not set or invalid.

    Returns:
        Logging level constant (e.g., logging.INFO).
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)

    if level is None or not isinstance(level, int):
        return logging.INFO

    return level


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
    debug_loggers: Optional[Iterable[str]] = None,
) -> None:
    """
    Configure logging for the application using dictConfig.

    Safe to call multiple times; existing loggers are not disabled.

    Args:
        level: Logging level. If None, reads from LOG_LEVEL env var (default: INFO).
        format_string: Optional custom format string.
        log_file: Optional file path to write logs to (with rotation).
        debug_loggers: Logger names forced to DEBUG regardless of `level`.
    """
    if level is None:
        level = get_log_level()

    if format_string is None:
        format_string = DEFAULT_FORMAT

    forced = list(debug_loggers or [])
    # Handlers must pass DEBUG records when any logger is forced to DEBUG
    handler_level = logging.DEBUG if forced else level

    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": format_string,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": handler_level,
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {name: {"level": logging.DEBUG} for name in forced},
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": handler_level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 10_485_760,  # 10 MB
            "backupCount": 5,
        }
        config["root"]["handlers"].append("file")

    logging.config.dictConfig(config)
