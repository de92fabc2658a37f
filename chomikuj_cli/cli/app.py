"""
Defines the command-line interface for the application using Typer.
URLs can be given as arguments or piped in through stdin.
"""

import asyncio
import logging
import os
import sys
import time
from collections.abc import Iterable
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from chomikuj_cli import __version__
from chomikuj_cli.api.session import ChomikboxSession
from chomikuj_cli.api.transport import HttpTransport
from chomikuj_cli.core.download_manager import DownloadManager
from chomikuj_cli.exceptions import ChomikujCliError, OperationCancelledError
from chomikuj_cli.models.credentials import Credentials, hash_password
from chomikuj_cli.storage.config_manager import ConfigManager
from chomikuj_cli.utils.cancellation import CancellationToken
from chomikuj_cli.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_summary_panel,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("chomikuj_cli")

EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="chomikuj-cli",
    help=(
        "Downloads files and folders from chomikuj.pl through the ChomikBox"
        " service. Use 'chomikuj-cli <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "chomikuj-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """ChomikBox Downloader CLI"""
    if version:
        console.print(f"[bold]chomikuj-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("chomikuj_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]chomikuj-cli init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        try:
            config_data = config_manager.read_settings()
        except ChomikujCliError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1) from e
        print_config(CONFIG_FILE, config_data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    username: str = typer.Argument(..., help="chomikuj.pl user name."),
    password: str = typer.Argument(
        ..., help="Account password, or its MD5 hash with --hash."
    ),
    is_hash: bool = typer.Option(
        False, "--hash", help="The PASSWORD argument is already an MD5 hash."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite existing credentials without asking."
    ),
):
    """Initialize configuration with chomikuj.pl credentials."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm(
            "Configuration file already exists. Overwrite the credentials?"
        )
    ):
        raise typer.Abort()

    try:
        if is_hash:
            credentials = Credentials.from_hash(username, password)
        else:
            credentials = Credentials.from_password(username, password)
    except ValidationError as e:
        console.print(f"[red]✗ Invalid credentials: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(code=1) from e

    settings = {
        "username": credentials.username,
        "password": credentials.password_hash,
    }
    config_manager = ConfigManager(CONFIG_FILE)
    try:
        config_manager.save_new_config(settings)
    except ChomikujCliError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )
    console.print(
        "Ready to download! Try: [cyan]chomikuj-cli download <URL>[/cyan]"
    )


def parse_url_lines(lines: Iterable[str]) -> list[str]:
    """
    Extracts URLs from text lines, keeping their first-seen order.

    Blank lines and ``#`` comments are ignored; a line may hold several
    whitespace-separated URLs.
    """
    found: dict[str, None] = {}
    for line in lines:
        for token in line.split():
            if token.startswith("#"):
                break
            if token.startswith(("http://", "https://")):
                found.setdefault(token, None)
            else:
                log.warning(f"Ignoring '{escape(token)}': not an http(s) URL.")
    return list(found)


def _read_urls_from_stdin() -> list[str]:
    if sys.stdin.isatty():
        console.print(
            "[red]✗ --stdin expects piped input[/red], e.g. "
            "[cyan]chomikuj-cli download --stdin < urls.txt[/cyan]"
        )
        raise typer.Exit(code=1)

    urls = parse_url_lines(sys.stdin)
    log.debug(f"Read {len(urls)} URL(s) from stdin")
    return urls


def _print_interrupted() -> None:
    console.print(
        "\n[yellow]Interrupted. Partial files were kept as .part "
        "and will resume on the next run.[/yellow]"
    )


def _split_extensions(values: list[str] | None) -> list[str] | None:
    if not values:
        return None
    return [ext for value in values for ext in value.split(",") if ext.strip()]


@app.command(name="download")
def download_command(
    urls: list[str] | None = typer.Argument(  # noqa: B008
        None, help="One or more chomikuj.pl file or folder URLs."
    ),
    # --- Destination Options ---
    destination: str | None = typer.Option(
        None, "-d", "--destination", help="Folder receiving the downloaded files."
    ),
    structure: bool | None = typer.Option(
        None,
        "-s",
        "--structure/--flat",
        help="Recreate the remote folder structure under the destination.",
    ),
    overwrite: bool | None = typer.Option(
        None,
        "-o",
        "--overwrite/--no-overwrite",
        help="Replace existing files instead of skipping or renaming them.",
    ),
    # --- Selection Options ---
    extensions: list[str] | None = typer.Option(  # noqa: B008
        None,
        "-e",
        "--ext",
        help="Only download files with these extensions (comma separated, repeatable).",
    ),
    recursive: bool | None = typer.Option(
        None,
        "-r",
        "--recursive/--no-recursive",
        help="Also download every subfolder of the given folders.",
    ),
    # --- Transfer Options ---
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous file transfers."
    ),
    stamp: int | None = typer.Option(
        None, "--stamp", help="First sequence stamp sent to the service."
    ),
    # --- One-off Credentials ---
    user: str | None = typer.Option(
        None, "--user", help="User name, instead of the configured one."
    ),
    password: str | None = typer.Option(
        None, "--password", help="Plaintext password, hashed before use."
    ),
    password_hash: str | None = typer.Option(
        None, "--hash", help="MD5 hash of the password."
    ),
    # --- Behavior & Utility Options ---
    log_json: Path | None = typer.Option(  # noqa: B008
        None, "--log-json", help="Write JSON Lines event logs into this folder."
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Also read URLs from stdin, one or more per line."
    ),
):
    """Download files and folders from chomikuj.pl."""
    urls = parse_url_lines(urls or [])
    if stdin:
        urls = list(dict.fromkeys(urls + _read_urls_from_stdin()))
    if not urls:
        console.print(
            "[red]✗ No URLs provided.[/red] "
            "Use: [cyan]chomikuj-cli download <URL>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    if password is not None and password_hash is not None:
        console.print("[red]✗ Use either --password or --hash, not both.[/red]")
        raise typer.Exit(code=1)
    if password is not None:
        password_hash = hash_password(password)

    cli_options = {
        key: value
        for key, value in {
            "source_urls": urls,
            "destination": destination,
            "structure": structure,
            "overwrite": overwrite,
            "extensions": _split_extensions(extensions),
            "recursive": recursive,
            "max_workers": workers,
            "starting_stamp": stamp,
            "username": user,
            "password": password_hash,
            "log_json": True if log_json else None,
        }.items()
        if value is not None
    }

    async def _download_async():
        try:
            config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        except ChomikujCliError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e

        log_dir = log_json or (CONFIG_DIR / "logs" if config.log_json else None)
        base_logger, transfer_logger, session_logger = create_structured_logger(
            log_dir, enable_json=log_dir is not None
        )
        cancel_token = CancellationToken()

        try:
            async with HttpTransport(max_connections=config.max_workers + 1) as transport:
                session = ChomikboxSession(
                    Credentials.from_hash(config.username, config.password),
                    transport,
                    service_url=config.service_url,
                    starting_stamp=config.starting_stamp,
                    cancel_token=cancel_token,
                    session_logger=session_logger,
                )
                manager = DownloadManager(
                    config,
                    session,
                    transport,
                    cancel_token=cancel_token,
                    transfer_logger=transfer_logger,
                    session_logger=session_logger,
                )

                console.print("[bold cyan]📁 Starting download session...[/bold cyan]")
                start_time = time.monotonic()
                try:
                    stats = await manager.download()
                except asyncio.CancelledError:
                    cancel_token.cancel("interrupted")
                    raise
                duration = time.monotonic() - start_time

            session_logger.run_completed(
                duration,
                stats.files_downloaded,
                stats.files_failed,
                stats.total_bytes_downloaded,
            )
        except OperationCancelledError as e:
            _print_interrupted()
            raise typer.Exit(code=EXIT_INTERRUPTED) from e
        except ChomikujCliError as e:
            console.print(format_error_with_suggestions(e))
            log.debug("Full traceback:", exc_info=True)
            raise typer.Exit(code=1) from e
        finally:
            base_logger.close()

        print_summary_panel(stats, duration)

    try:
        asyncio.run(_download_async())
    except KeyboardInterrupt:
        _print_interrupted()
        raise typer.Exit(code=EXIT_INTERRUPTED) from None


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_validation_table(config)
    except ChomikujCliError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
