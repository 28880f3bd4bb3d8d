"""Logging configuration using loguru."""

import sys

from loguru import logger

HUMAN_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | "
    "<level>{message}</level>"
)


def setup_logging(log_level: str = "WARNING", json_logs: bool = False) -> None:
    """Configure loguru for the CLI.

    Logs go to stderr so command output on stdout stays machine-readable
    (``status --json``).

    Args:
        log_level: Minimum log level to output
        json_logs: If True, output logs as JSON lines
    """
    logger.remove()

    if json_logs:
        logger.add(
            sys.stderr,
            format="{message}",
            level=log_level.upper(),
            serialize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format=HUMAN_FORMAT,
            level=log_level.upper(),
            colorize=True,
        )
