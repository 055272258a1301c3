"""Logging configuration."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"
DATE_FORMAT = "[%X]"


def setup_logging(level: str = "WARNING") -> None:
    """Set up logging for the CLI.

    Log records go to stderr through rich so they don't interleave with the
    assistant's answers on stdout.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,  # Override any existing configuration
    )

    # Set specific log levels for third-party libraries
    for noisy in ("httpx", "httpcore", "openai", "googleapiclient", "google_auth_httplib2"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
