"""
Console entry point for ``auxbar-sync`` and ``python -m auxbar_sync``.

Typer handles usage errors and ``typer.Exit`` itself; anything else that
escapes a command is reported here as a panel and mapped to an exit code.
"""

import asyncio
import logging
import sys

from rich.console import Console

from auxbar_sync.cli.app import app
from auxbar_sync.cli.formatters import format_error_with_suggestions
from auxbar_sync.exceptions import AuxbarError, ConfigurationError

log = logging.getLogger("auxbar_sync")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_CONFIG = 2


def _use_utf8_console() -> None:
    # The legacy Windows code page cannot print the status icons.
    if sys.platform != "win32":
        return
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")


def report_error(error: Exception, console: Console) -> int:
    """Prints ``error`` for the user and returns the exit code to use."""
    if isinstance(error, AuxbarError):
        console.print(format_error_with_suggestions(error))
        return EXIT_BAD_CONFIG if isinstance(error, ConfigurationError) else EXIT_FAILURE

    console.print(format_error_with_suggestions(error, {"type": "Unexpected"}))
    log.debug("Full traceback:", exc_info=error)
    return EXIT_FAILURE


def main() -> None:
    _use_utf8_console()
    console = Console(stderr=True)

    try:
        app()
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("[yellow]⚠️  Sync stopped.[/yellow]")
        sys.exit(EXIT_OK)
    except Exception as e:
        sys.exit(report_error(e, console))


if __name__ == "__main__":
    main()
