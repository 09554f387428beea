"""Click CLI entry point for cfg_reloader."""

import json
import logging
import signal
import sys
import threading
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from cfg_reloader.config import DEFAULT_BATCH_SECONDS, ReloaderSettings, load_settings
from cfg_reloader.errors import ReloaderError
from cfg_reloader.merge import merge_files
from cfg_reloader.service import ConfigReloader

console = Console()

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    """Configure logging level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Silence per-event chatter from the inotify/fsevents emitters
    logging.getLogger("watchdog").setLevel(logging.WARNING)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """cfg-reloader: hot-reload config merged from several JSON files."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command("merge")
@click.argument("files", nargs=-1, required=True, type=click.Path(path_type=Path))
def merge_cmd(files: tuple[Path, ...]) -> None:
    """Print the merged config of FILES (later files win)."""
    try:
        tree = merge_files(files)
    except ReloaderError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    console.print_json(json.dumps(tree))


def _print_change(key: str, raw: bytes) -> None:
    """Print one key change reported by the reloader."""
    if not raw:
        console.print(f"[bold]{escape(key)}[/bold] [red]removed[/red]")
        return
    value = escape(raw.decode("utf-8"))
    console.print(f"[bold]{escape(key)}[/bold] [green]=[/green] {value}", highlight=False)


@main.command("watch")
@click.argument("files", nargs=-1, type=click.Path(path_type=Path))
@click.option("--key", "-k", "keys", multiple=True, help="Key(s) to report. Default: all.")
@click.option(
    "--batch",
    "batch_seconds",
    type=float,
    default=None,
    help=f"Debounce window in seconds.  [default: {DEFAULT_BATCH_SECONDS}]",
)
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to a JSON settings file.",
)
def watch_cmd(
    files: tuple[Path, ...],
    keys: tuple[str, ...],
    batch_seconds: float | None,
    settings_path: Path | None,
) -> None:
    """Watch FILES and print every key change until interrupted."""
    try:
        if settings_path is not None:
            settings = load_settings(settings_path)
        else:
            settings = ReloaderSettings(files=files)
        if files:
            settings = ReloaderSettings(
                files=files,
                batch_seconds=settings.batch_seconds,
                idle_interval=settings.idle_interval,
            )
        if batch_seconds is not None:
            settings = ReloaderSettings(
                files=settings.files,
                batch_seconds=batch_seconds,
                idle_interval=settings.idle_interval,
            )
    except (OSError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if not keys:
        try:
            keys = tuple(merge_files(settings.files))
        except ReloaderError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        if not keys:
            click.echo("Error: no keys found in config files. Use --key.", err=True)
            sys.exit(1)

    reloader = ConfigReloader.from_settings(settings)
    for key in keys:
        reloader.subscribe(key, _print_change)

    stop = threading.Event()
    try:
        reloader.start(cancel=stop)
    except (ReloaderError, OSError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    signal.signal(signal.SIGINT, lambda _sig, _frame: stop.set())
    signal.signal(signal.SIGTERM, lambda _sig, _frame: stop.set())

    console.print(
        f"Watching [bold]{len(settings.files)}[/bold] file(s) for "
        f"[bold]{len(keys)}[/bold] key(s). Press Ctrl+C to stop.",
        style="dim",
    )
    events = reloader.events()
    try:
        for event in events:
            stamp = event.time.astimezone()
            console.print(
                f"[dim]{stamp:%H:%M:%S}[/dim] reloaded: {escape(event.reason)}",
                highlight=False,
            )
            if stop.is_set():
                break
    finally:
        reloader.stop()
    click.echo("\nStopped.", err=True)
