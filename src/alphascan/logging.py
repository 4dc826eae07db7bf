"""Centralized logging configuration using loguru."""

import sys

from loguru import logger

from alphascan.config import settings

# colorize=True keeps ANSI colors when stderr is not a TTY (container logs)
logger.remove()
logger.add(sys.stderr, level=settings.log_level.upper(), colorize=True)

__all__ = ["logger"]
