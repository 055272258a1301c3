"""inbox_bot - an AI assistant that manages your Gmail inbox from the terminal."""

__version__ = "0.1.0"
