"""Command line entry point for videowall."""

from __future__ import annotations

import logging

import click
import uvicorn
from rich.console import Console
from rich.table import Table

from videowall.config import AppSettings, resolve_display_timezone
from videowall.dependencies import (
    get_channel_directory,
    get_coordinator,
    get_renderer,
    get_settings,
)
from videowall.logging_config import configure_application_logging, configure_cli_logging
from videowall.main import app
from videowall.services.renderer import RenderError
from videowall.services.youtube_client import YouTubeServiceError

LOGGER = logging.getLogger("videowall.cli")
console = Console()


def _load_settings_or_exit() -> AppSettings:
    try:
        return get_settings()
    except ValueError as exc:
        configure_cli_logging("INFO")
        LOGGER.critical("startup aborted: %s", exc)
        raise SystemExit(1) from exc


@click.group()
@click.version_option(version="0.1.0")
def main() -> None:
    """videowall - latest uploads from a fixed set of YouTube channels."""


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to VIDEOWALL_HOST).")
@click.option("--port", type=int, default=None, help="Bind port (defaults to VIDEOWALL_PORT).")
def serve(host: str | None, port: int | None) -> None:
    """Serve the latest videos page."""
    settings = _load_settings_or_exit()
    configure_application_logging(settings)

    try:
        get_renderer()
        get_coordinator()
    except (YouTubeServiceError, RenderError) as exc:
        LOGGER.critical("startup aborted: %s", exc)
        raise SystemExit(1) from exc

    bind_host = host or settings.host
    bind_port = port or settings.port
    LOGGER.info("starting server host=%s port=%s", bind_host, bind_port)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


@main.command()
def channels() -> None:
    """Show the resolved channel directory."""
    settings = _load_settings_or_exit()
    configure_cli_logging()

    try:
        directory = get_channel_directory()
    except YouTubeServiceError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title="Channels")
    table.add_column("Channel id", style="cyan")
    table.add_column("Name")
    for channel_id in settings.channel_ids:
        name = directory.display_name(channel_id)
        table.add_row(channel_id, name or "[dim]unresolved[/dim]")
    console.print(table)


@main.command()
@click.option("--limit", type=int, default=20, show_default=True, help="Rows to show.")
def latest(limit: int) -> None:
    """Fetch once and print the latest videos."""
    settings = _load_settings_or_exit()
    configure_cli_logging()
    display_timezone = resolve_display_timezone(settings.display_timezone)

    try:
        videos = get_coordinator().get_snapshot()
    except YouTubeServiceError as exc:
        raise click.ClickException(f"YouTube API error: {exc}") from exc

    if not videos:
        console.print("[yellow]No videos published recently.[/yellow]")
        return

    table = Table(title=f"Latest videos ({len(videos)})")
    table.add_column("Published", style="cyan", no_wrap=True)
    table.add_column("Channel")
    table.add_column("Title")
    table.add_column("Status", no_wrap=True)
    for video in videos[: max(1, limit)]:
        status = video.live_status if video.live_status != "none" else ""
        if video.scheduled_start_at is not None:
            status = f"upcoming {video.scheduled_start_at.astimezone(display_timezone):%Y-%m-%d %H:%M}"
        table.add_row(
            f"{video.published_at.astimezone(display_timezone):%Y-%m-%d %H:%M}",
            video.channel_name,
            video.title,
            status,
        )
    console.print(table)


if __name__ == "__main__":
    main()
