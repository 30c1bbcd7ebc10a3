"""Logging configuration for campaign-assist."""

import sys

from loguru import logger


def configure_logging(*, verbose: bool = False) -> None:
    """Route loguru output to stderr, keeping stdout free for CLI output and MCP stdio."""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format="{level.icon} {message}")
