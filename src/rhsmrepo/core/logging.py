"""Logging setup driven by the [logging] section of rhsm.conf."""

from __future__ import annotations

import logging

from rhsmrepo.core.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# rhsm.conf spells WARNING as WARN
_LEVELS = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def get_log_level(config: LoggingConfig) -> int:
    """Map the configured level name to a logging level."""
    return _LEVELS.get(config.default_log_level.upper(), logging.INFO)


def setup_logging(config: LoggingConfig | None = None, handler: logging.Handler | None = None) -> logging.Logger:
    """Configure the package logger.

    Args:
        config: Logging configuration (defaults to INFO)
        handler: Handler to attach (defaults to a stderr StreamHandler)

    Returns:
        The configured "rhsmrepo" logger
    """
    config = config or LoggingConfig()
    logger = logging.getLogger("rhsmrepo")
    logger.setLevel(get_log_level(config))

    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # Replace handlers from an earlier call instead of stacking them
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)

    return logger
