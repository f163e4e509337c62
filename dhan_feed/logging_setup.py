"""Logging configuration for command-line use."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str = 'INFO', console: Console = None) -> None:
    """Route dhan_feed logs through rich at the given level."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=level.upper(),
        format='%(message)s',
        datefmt='[%X]',
        handlers=[handler],
        force=True,
    )
    # websockets is chatty at DEBUG
    logging.getLogger('websockets').setLevel(max(logging.INFO, logging.getLogger().level))
