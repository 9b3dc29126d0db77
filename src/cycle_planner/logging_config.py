"""
Cycle Planner Logging Configuration

Every module logs through ``logging.getLogger(__name__)``, so all records end
up under the ``cycle_planner`` logger configured here. Tokens that slip into
messages (Jira, GitHub, Anthropic keys) are masked before they are written.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from cycle_planner.ui import mask_secrets

ROOT_LOGGER = "cycle_planner"
DEBUG_ENV_VAR = "CYCLE_PLANNER_DEBUG"

VERBOSE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SHORT_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"


def debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV_VAR, "").lower() in ("1", "true", "yes")


class SecretMaskingFormatter(logging.Formatter):
    """Formatter that masks API tokens in formatted records."""

    def format(self, record: logging.LogRecord) -> str:
        return mask_secrets(super().format(record))


def setup_logging(
    level: Optional[int] = None,
    log_file: Optional[Path] = None,
    quiet: bool = False
) -> logging.Logger:
    """Configure the ``cycle_planner`` logger.

    Args:
        level: Console level; DEBUG when CYCLE_PLANNER_DEBUG is set, else WARNING
        log_file: Also write everything at DEBUG to this file
        quiet: No console handler at all

    Returns:
        The package root logger
    """
    verbose = debug_enabled()
    if level is None:
        level = logging.DEBUG if verbose else logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(min(level, logging.DEBUG) if log_file else level)
    logger.handlers.clear()

    if not quiet:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(level)
        fmt = VERBOSE_FORMAT if verbose or level <= logging.DEBUG else SHORT_FORMAT
        handler.setFormatter(SecretMaskingFormatter(fmt))
        logger.addHandler(handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(SecretMaskingFormatter(FILE_FORMAT))
        logger.addHandler(handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the cycle_planner hierarchy, configuring defaults on first use."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    if not logging.getLogger(ROOT_LOGGER).handlers:
        setup_logging()

    return logging.getLogger(name)
