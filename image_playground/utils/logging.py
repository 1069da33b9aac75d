"""
Logging setup.

Console logging through rich, configured once per process.
"""

import logging

from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    """Install a RichHandler on the root logger (idempotent)."""
    if logging.getLogger().handlers:
        return
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
