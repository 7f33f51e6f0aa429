"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from auxbar_sync import __version__
from auxbar_sync.api.client import AuxbarAPIClient
from auxbar_sync.api.session import SessionManager
from auxbar_sync.core.orchestrator import Orchestrator, SyncState
from auxbar_sync.exceptions import AuxbarError, ConfigurationError, SessionConflictError
from auxbar_sync.media.sources import MediaSample, StaticMediaSource, default_media_source
from auxbar_sync.models.settings import DEFAULT_BASE_URL, SyncSettings
from auxbar_sync.presence.client import DiscordPresenceClient
from auxbar_sync.storage.config_manager import ConfigManager, get_config_dir
from auxbar_sync.utils.structured_logger import create_structured_logger

from .formatters import format_track_line, print_display_table, print_status_table

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
log = logging.getLogger("auxbar_sync")

app = typer.Typer(
    name="auxbar-sync",
    help=(
        "Keeps your Auxbar widget and Discord status in sync with the music"
        " playing on this computer. Use 'auxbar-sync <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.json"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    base_url: str = typer.Option(
        DEFAULT_BASE_URL,
        "--server",
        envvar="AUXBAR_BASE_URL",
        help="Root URL of the Auxbar service.",
    ),
):
    """Auxbar desktop sync"""
    if version:
        console.print(f"[bold]auxbar-sync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("auxbar_sync").setLevel("DEBUG" if verbose >= 1 else "INFO")

    try:
        ctx.obj = SyncSettings(base_url=base_url)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid server URL '{base_url}'.") from e

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def login(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email."),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Account password."
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Take the session over from another device without asking.",
    ),
):
    """Sign in to Auxbar and remember the session."""
    settings: SyncSettings = ctx.obj

    async def _login_async():
        store = ConfigManager(CONFIG_FILE)
        api_client = AuxbarAPIClient(settings.base_url)
        session = SessionManager(api_client, store, settings)
        try:
            try:
                await session.login(email, password, force_login=force)
            except SessionConflictError:
                if not typer.confirm(
                    "You are already logged in on another device or instance. "
                    "Log out there and continue here?"
                ):
                    console.print("[yellow]Login cancelled.[/yellow]")
                    raise typer.Abort() from None
                await session.login(email, password, force_login=True)
        finally:
            await session.close()
            await api_client.close()

        console.print(f"\n[bold green]✓ Session saved to '{CONFIG_FILE}'[/bold green]")
        console.print("Ready to sync! Try: [cyan]auxbar-sync run[/cyan]")

    asyncio.run(_login_async())


@app.command()
def logout():
    """Forget the saved session. Display settings are kept."""
    store = ConfigManager(CONFIG_FILE)
    if not store.load().has_tokens:
        console.print("[dim]Not signed in.[/dim]")
        return

    store.clear_tokens()
    store.update_widget_slug(None)
    console.print("[green]✓ Logged out.[/green]")


def _demo_source() -> StaticMediaSource:
    """A scripted session: one song plays, is paused, then the next one starts."""
    first = [
        MediaSample(
            title="Midnight City",
            artist="M83",
            album="Hurry Up, We're Dreaming",
            playing=True,
            position_ms=offset * 1000,
            duration_ms=244_000,
        )
        for offset in range(10)
    ]
    paused = [
        MediaSample(
            title="Midnight City",
            artist="M83",
            album="Hurry Up, We're Dreaming",
            playing=False,
            position_ms=10_000,
            duration_ms=244_000,
        )
    ] * 5
    second = [
        MediaSample(
            title="Wait",
            artist="M83",
            album="Hurry Up, We're Dreaming",
            playing=True,
            position_ms=offset * 1000,
            duration_ms=341_000,
        )
        for offset in range(10)
    ]
    return StaticMediaSource([None, *first, *paused, *second, None])


@app.command()
def run(
    ctx: typer.Context,
    demo: bool = typer.Option(
        False, "--demo", help="Use a scripted media session instead of the system one."
    ),
    email: Optional[str] = typer.Option(
        None, "--email", "-e", help="Sign in with this email if no session is saved."
    ),
    log_dir: Optional[Path] = typer.Option(
        None, "--log-dir", help="Also write sync events as JSON lines to this directory."
    ),
):
    """Sync until interrupted with Ctrl+C."""
    settings: SyncSettings = ctx.obj

    async def _run_async():
        base_logger, event_log = create_structured_logger(
            log_dir, enable_json=log_dir is not None
        )
        orchestrator = Orchestrator(
            AuxbarAPIClient(settings.base_url),
            ConfigManager(CONFIG_FILE),
            _demo_source() if demo else default_media_source(),
            DiscordPresenceClient(settings.discord_client_id),
            settings,
            on_status=lambda text: console.print(f"[dim]{text}[/dim]"),
            on_track=lambda track: console.print(format_track_line(track)),
            event_log=event_log,
        )

        try:
            state = await orchestrator.start()
            if state is SyncState.LOGGED_OUT and email:
                password = typer.prompt("Password", hide_input=True)
                try:
                    await orchestrator.login(email, password)
                except SessionConflictError:
                    force = typer.confirm(
                        "You are already logged in on another device or instance. "
                        "Log out there and continue here?"
                    )
                    await orchestrator.resolve_conflict(force)

            if orchestrator.state is not SyncState.CONNECTED:
                console.print(
                    "[red]✗ Not signed in.[/] Run [cyan]auxbar-sync login[/cyan] first."
                )
                raise typer.Exit(code=1)

            console.print("[bold cyan]🎵 Syncing. Press Ctrl+C to stop.[/bold cyan]")
            await asyncio.Event().wait()
        finally:
            await orchestrator.shutdown()
            base_logger.close()

    asyncio.run(_run_async())


@app.command()
def status(ctx: typer.Context):
    """Show the saved session and settings."""
    store = ConfigManager(CONFIG_FILE)
    print_status_table(CONFIG_FILE, store.load(), ctx.obj)


@app.command()
def display(
    enabled: Optional[bool] = typer.Option(
        None, "--enable/--disable", help="Show the track on your Discord profile."
    ),
    album: Optional[bool] = typer.Option(
        None, "--album/--no-album", help="Show the album name on hover."
    ),
    progress: Optional[bool] = typer.Option(
        None, "--progress/--no-progress", help="Show elapsed and total time."
    ),
    button: Optional[bool] = typer.Option(
        None, "--button/--no-button", help="Show the 'Get Auxbar' button."
    ),
):
    """Show or change what the Discord status displays."""
    store = ConfigManager(CONFIG_FILE)
    changes = {
        key: value
        for key, value in {
            "enabled": enabled,
            "show_album_name": album,
            "show_progress": progress,
            "show_button": button,
        }.items()
        if value is not None
    }

    if changes:
        try:
            display_config = store.update_display_config(changes)
        except AuxbarError as e:
            console.print(f"[red]✗ Could not update display settings: {e}[/red]")
            raise typer.Exit(code=1) from e
        console.print("[green]✓ Display settings saved.[/green]")
    else:
        display_config = store.load().discord

    print_display_table(display_config)
