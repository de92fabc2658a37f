"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from chomikuj_cli.models.config import DownloadConfig
from chomikuj_cli.models.stats import TransferStats
from chomikuj_cli.utils.formatting import format_duration, format_size, format_speed


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthenticationError": [
            "• Verify the user name and password in the configuration file.",
            "• Run `chomikuj-cli init <USER> <PASSWORD> --force` to store them again.",
            "• Check that the account can log in on chomikuj.pl.",
        ],
        "ConfigurationError": [
            "• Run `chomikuj-cli validate` to see which setting is wrong.",
            "• Run `chomikuj-cli --show-config` to inspect the stored values.",
        ],
        "FileSystemFatalError": [
            "• Check that the destination folder exists and is writable.",
            "• Check the free space on the destination disk.",
            "• Choose another folder with `-d/--destination`.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• The ChomikBox service might be temporarily unavailable.",
            "• Run the command again; partial files are resumed.",
        ],
        "OperationCancelledError": [
            "• Run the same command again to resume the interrupted files.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding the password hash."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "password":
            value = "[hidden]"
        elif isinstance(value, list):
            value = ", ".join(value) or "(all)"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _flag(enabled: bool) -> str:
    return "✓ Enabled" if enabled else "✗ Disabled"


def print_validation_table(config: DownloadConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("User:", f"[green]{config.username}[/green]")
    table.add_row("Destination:", f"[dim]{config.destination}[/dim]")
    table.add_row("Extensions:", ", ".join(config.extensions) or "(all)")
    table.add_row("Recursive:", _flag(config.recursive))
    table.add_row("Keep Structure:", _flag(config.structure))
    table.add_row("Overwrite:", _flag(config.overwrite))
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row("Max Attempts:", str(config.max_attempts))
    table.add_row("Service:", f"[dim]{config.service_url}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_summary_panel(stats: TransferStats, duration_s: float):
    """Displays the final summary of the transfer run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.files_downloaded}[/bold green]"
    )
    if stats.files_resumed > 0:
        stats_table.add_row("↻ Resumed:", f"[green]{stats.files_resumed}[/green]")
    if stats.files_reconciled > 0:
        stats_table.add_row(
            "↻ Finalized .part:", f"[green]{stats.files_reconciled}[/green]"
        )

    # Only non-zero skip reasons are shown
    skip_sections = []
    if stats.files_skipped_exists > 0:
        skip_sections.append(f"[yellow]{stats.files_skipped_exists} (exists)[/yellow]")
    if stats.files_skipped_extension > 0:
        skip_sections.append(
            f"[yellow]{stats.files_skipped_extension} (extension)[/yellow]"
        )
    if skip_sections:
        stats_table.add_row("○ Skipped:", " + ".join(skip_sections))

    if stats.files_renamed > 0:
        stats_table.add_row("Renamed:", f"[yellow]{stats.files_renamed}[/yellow]")
    if stats.files_overwritten > 0:
        stats_table.add_row(
            "Overwritten:", f"[yellow]{stats.files_overwritten}[/yellow]"
        )
    if stats.links_unavailable > 0:
        stats_table.add_row(
            "⚠ No Link:", f"[yellow]{stats.links_unavailable}[/yellow]"
        )
    if stats.files_not_found > 0:
        stats_table.add_row(
            "✗ Not Found:", f"[bold red]{stats.files_not_found}[/bold red]"
        )
    if stats.files_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.files_failed}[/bold red]")

    stats_table.add_row("", "")

    stats_table.add_row("Folders:", f"[cyan]{stats.folders_visited}[/cyan]")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_bytes_downloaded)}[/cyan]"
    )
    avg_speed = stats.total_bytes_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_speed(avg_speed)}[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.has_failures:
        title = "⚠ [bold]Download Finished With Errors[/bold]"
        border_color = "yellow"
    else:
        title = "📁 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )

    if stats.failed_urls:
        console.print("[bold red]Failed URLs:[/bold red]")
        for url in stats.failed_urls:
            console.print(f"  [dim]{url}[/dim]", markup=True, highlight=False)

    console.print()
