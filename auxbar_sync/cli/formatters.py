"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from auxbar_sync.models.config import AppConfig, DisplayConfig
from auxbar_sync.models.settings import SyncSettings
from auxbar_sync.models.track import TrackState
from auxbar_sync.utils.formatting import format_clock, format_duration


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthenticationError": [
            "• Check the email and password you entered.",
            "• Make sure auxbar.me is reachable from this machine.",
        ],
        "SessionConflictError": [
            "• Your account is signed in on another device or instance.",
            "• Run `auxbar-sync login --force` to take the session over.",
        ],
        "RefreshFailedError": [
            "• Your session has expired or was taken over elsewhere.",
            "• Run `auxbar-sync login` to sign in again.",
        ],
        "ConfigurationError": [
            "• Check the values you passed on the command line.",
            "• Run `auxbar-sync status` to see where the config file lives.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The Auxbar server might be temporarily unavailable.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
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


def _flag(value: bool) -> str:
    return "[green]✓ On[/green]" if value else "[dim]✗ Off[/dim]"


def print_display_table(display: DisplayConfig):
    """Displays the rich presence toggles."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Rich Presence:", _flag(display.enabled))
    table.add_row("Album Name:", _flag(display.show_album_name))
    table.add_row("Playback Progress:", _flag(display.show_progress))
    table.add_row("Get Auxbar Button:", _flag(display.show_button))

    console.print(
        Panel(table, title="[bold]Discord Display[/bold]", border_style="cyan", expand=False)
    )


def print_status_table(config_path: Path, config: AppConfig, settings: SyncSettings):
    """Displays the sign-in state and the effective settings, hiding tokens."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    signed_in = "[green]✓ Yes[/green]" if config.has_tokens else "[yellow]✗ No[/yellow]"
    table.add_row("Signed In:", signed_in)
    table.add_row("Widget:", config.widget_slug or "[dim]unknown[/dim]")
    table.add_row("Server:", settings.base_url)
    table.add_row(
        "Token Renewal:", f"every {format_duration(settings.refresh_interval_s)}"
    )
    table.add_row("Poll Interval:", format_duration(settings.poll_interval_s))
    table.add_row("Rich Presence:", _flag(config.discord.enabled))
    table.add_row("Config File:", f"[dim]{config_path}[/dim]")

    console.print(
        Panel(table, title="[bold]auxbar-sync Status[/bold]", border_style="cyan", expand=False)
    )


def format_track_line(track: Optional[TrackState]) -> str:
    """One console line describing a track transition."""
    if track is None:
        return "[dim]⏹  Nothing playing[/dim]"

    icon = "▶" if track.playing else "⏸"
    line = f"{icon}  [bold]{escape(track.title)}[/bold] [dim]by[/dim] {escape(track.artist)}"
    if track.position_ms is not None and track.duration_ms:
        line += (
            f" [dim]({format_clock(track.position_ms)} / "
            f"{format_clock(track.duration_ms)})[/dim]"
        )
    return line
