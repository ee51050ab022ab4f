"""Logging configuration for the gatekeep CLI.

Module code logs through ``logging.getLogger(__name__)``; this module only wires the
root logger to a rich handler on stderr so stdout stays free for reports.
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "GATEKEEP_LOG"
DEFAULT_LOG_LEVEL = "INFO"


def resolve_log_level(level: str | None = None) -> int:
    """Resolve a log level name from the argument, the environment, or the default.

    Args:
        level: Explicit level name (e.g. "debug"); falls back to $GATEKEEP_LOG

    Returns:
        Numeric logging level

    Raises:
        ValueError: If the level name is unknown
    """
    name = (level or os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    numeric = logging.getLevelNamesMapping().get(name)
    if numeric is None:
        raise ValueError(f"Unknown log level: {name}")
    return numeric


def configure_logging(level: str | None = None) -> None:
    """Send log records to stderr through rich, replacing existing root handlers."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=resolve_log_level(level),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # Third-party HTTP clients are chatty at INFO.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
