"""Allow running as `python -m inbox_bot`."""

from .cli import main

main()
