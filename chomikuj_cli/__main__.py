"""
Console-script entry point for chomikuj-cli.

Typer runs in standalone mode and turns usage errors, `typer.Exit` and
Ctrl-C inside commands into `SystemExit` itself. Anything else that escapes a
command is rendered here as an error panel.
"""

import logging
import os
import sys

from rich.console import Console

from chomikuj_cli.cli.app import app
from chomikuj_cli.cli.formatters import format_error_with_suggestions
from chomikuj_cli.exceptions import ChomikujCliError

EXIT_FAILURE = 1

log = logging.getLogger("chomikuj_cli")


def _force_utf8_console() -> None:
    # Windows consoles default to a legacy code page; file names are often Polish.
    if os.name != "nt":
        return
    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(encoding="utf-8")


def main() -> None:
    _force_utf8_console()
    console = Console(stderr=True)
    try:
        app()
    except ChomikujCliError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        log.debug("Unhandled error", exc_info=True)
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
