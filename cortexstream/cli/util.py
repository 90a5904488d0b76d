"""
Helpers for running the CLI with graceful Ctrl-C/SIGTERM handling.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
import signal
import sys
from typing import Any

from rich.logging import RichHandler

CANCELLED_EXIT = 130  # POSIX: 128 + SIGINT (2)


def configure_logging(verbose: bool) -> None:
    """Route library logs through Rich; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(show_time=False, show_path=False)],
        force=True,
    )


def print_cancelled(msg: str = "✖ Cancelled by user") -> None:
    sys.stderr.write("\n" + msg + "\n")
    sys.stderr.flush()


def graceful_main(fn: Callable[[list[str]], int], argv: list[str]) -> int:
    """
    Run fn(argv), treating SIGTERM like Ctrl-C.

    Returns:
        Exit code (130 for cancelled, or fn's return value)
    """

    def _term(_signum: int, _frame: Any) -> None:
        raise KeyboardInterrupt()

    old_term = signal.getsignal(signal.SIGTERM)
    signal.signal(signal.SIGTERM, _term)

    try:
        return int(fn(argv) or 0)
    except KeyboardInterrupt:
        print_cancelled()
        return CANCELLED_EXIT
    finally:
        signal.signal(signal.SIGTERM, old_term)
