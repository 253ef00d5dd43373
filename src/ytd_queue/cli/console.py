"""Shared Rich console and logging setup for the CLI layer.

All human-facing output goes to stderr so stdout stays free for
machine-readable use.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

_LEVELS: tuple[int, ...] = (logging.WARNING, logging.INFO, logging.DEBUG)


def verbosity_to_level(verbosity: int) -> int:
    """Map ``-v`` count to a logging level: 0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    return _LEVELS[min(max(verbosity, 0), len(_LEVELS) - 1)]


def configure_logging(verbosity: int = 0) -> None:
    """Route ``ytd_queue`` log records through Rich on the shared console."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )
    logging.getLogger("ytd_queue").setLevel(verbosity_to_level(verbosity))
