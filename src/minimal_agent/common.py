"""Console helpers shared by the command-line and API entry points."""

import sys
from enum import Enum
from typing import (
    Any,
    TextIO,
)

RESET = "\033[0m"


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"


def colored_print(
    text: str, color: AnsiColors, *args: Any, file: TextIO | None = None, **kwargs: Any
) -> None:
    """
    Print text in color.

    Colors are dropped when *file* is not a terminal, so piped output stays clean.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        file: Stream to write to (default: stdout)
        kwargs: Additional keyword arguments for print
    """
    stream = file or sys.stdout
    if getattr(stream, "isatty", lambda: False)():
        text = f"{color.value}{text}{RESET}"
    print(text, *args, file=stream, **kwargs)
