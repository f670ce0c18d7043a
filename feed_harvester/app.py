"""Typer CLI entrypoint for the feed harvester."""

from __future__ import annotations

import signal
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from rich import box
from rich.console import Console
from rich.table import Table

from .api import StatusService, create_app
from .config import ConfigLocator, HarvesterSettings, load_settings
from .engine import RoundSummary, build_store
from .errors import ConfigError, StorageError, StoreConnectionError
from .logging_conf import configure_logging, tail_log
from .orchestrator import Harvester

app = typer.Typer(
    help="Feed harvester command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Log inspection commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)
app.add_typer(log_app)

console = Console()


@dataclass
class AppState:
    settings: HarvesterSettings
    locator: ConfigLocator


def build_state(verbose: bool, config_path: Path | None = None) -> AppState:
    locator = ConfigLocator()
    settings = load_settings(config_path=config_path, locator=locator)
    if verbose:
        settings.verbose = True
    locator.ensure_directories()
    configure_logging(verbose=settings.verbose, log_dir=locator.logs_dir)
    return AppState(settings=settings, locator=locator)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        try:
            state = build_state(verbose=False)
        except ConfigError as exc:
            console.print(f"Invalid configuration: {exc}", style="red")
            raise typer.Exit(code=1) from exc
        ctx.obj = state
    return state


def _render_round(summary: RoundSummary) -> Table:
    table = Table(title="Round results", box=box.SIMPLE_HEAD)
    table.add_column("Feed", style="cyan", overflow="fold")
    table.add_column("New", style="green", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Duplicates", style="dim", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Error", style="red", overflow="fold")
    for tally in summary.tallies:
        table.add_row(
            tally.feed_url,
            str(tally.stored),
            str(tally.total),
            str(tally.duplicates),
            str(tally.failed),
            tally.error or "",
        )
    return table


def _wait_for_signal() -> None:
    stop_event = threading.Event()

    def _handle(signum, _frame) -> None:  # noqa: ANN001
        console.print(f"Received signal {signum}, shutting down…", style="yellow")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
    while not stop_event.wait(1.0):
        pass


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML or JSON settings file.", show_default=False
    ),
) -> None:
    try:
        ctx.obj = build_state(verbose=verbose, config_path=config)
    except ConfigError as exc:
        console.print(f"Invalid configuration: {exc}", style="red")
        raise typer.Exit(code=1) from exc


@app.command("run", help="Start polling and serve the status API.")
def run(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Listen address (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", help="Listen port (default from settings)."),
    no_api: bool = typer.Option(False, "--no-api", help="Poll only, without the HTTP surface."),
) -> None:
    state = _get_state(ctx)
    settings = state.settings
    harvester = Harvester.from_settings(settings)
    console.print(
        f"Monitoring {len(harvester.feeds)} feeds every {harvester.interval_seconds:g} seconds",
        style="cyan",
    )
    try:
        try:
            summary = harvester.start()
        except StoreConnectionError as exc:
            console.print(f"Failed to start harvester: {exc}", style="red")
            raise typer.Exit(code=1) from exc
        console.print(_render_round(summary))
        if no_api:
            _wait_for_signal()
        else:
            uvicorn.run(
                create_app(StatusService(harvester)),
                host=host or settings.host,
                port=port or settings.port,
                log_config=None,
            )
    finally:
        harvester.stop()
    console.print("Harvester stopped.", style="green")


@app.command("poll", help="Run a single polling round and exit.")
def poll(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    harvester = Harvester.from_settings(state.settings)
    try:
        summary = harvester.run_once()
    except StoreConnectionError as exc:
        console.print(f"Failed to connect to store: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(_render_round(summary))
    console.print(f"Stored {summary.stored} new items out of {summary.total} total.", style="green")


@app.command("items", help="List stored items.")
def items(
    ctx: typer.Context,
    title: Optional[str] = typer.Option(None, "--title", help="Case-insensitive title substring."),
    category: Optional[str] = typer.Option(None, "--category", help="Case-insensitive category substring."),
    limit: int = typer.Option(20, "--limit", min=1, help="Maximum rows to show."),
) -> None:
    state = _get_state(ctx)
    store = build_store(state.settings)
    try:
        with store:
            views = store.query(title=title, category=category, limit=limit)
    except StorageError as exc:
        console.print(f"Failed to read items: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    if not views:
        console.print("No matching items.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("Published", style="dim")
    table.add_column("Title", style="green", overflow="fold")
    table.add_column("Categories", style="cyan", overflow="fold")
    for view in views:
        published = view.pubDate.strftime("%Y-%m-%d %H:%M") if view.pubDate else ""
        table.add_row(published, view.title, ", ".join(view.categories))
    console.print(table)


@app.command("feeds", help="Show the configured feeds and poll interval.")
def feeds(ctx: typer.Context) -> None:
    settings = _get_state(ctx).settings
    table = Table(title=f"Every {settings.interval_seconds:g} seconds", box=box.SIMPLE_HEAD)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Feed URL", style="cyan", overflow="fold")
    for index, url in enumerate(settings.feeds, start=1):
        table.add_row(str(index), url)
    console.print(table)


@log_app.command("show", help="Show the most recent log lines.")
def log_show(
    ctx: typer.Context,
    tail: int = typer.Option(100, "--tail", min=1, help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log instead."),
) -> None:
    state = _get_state(ctx)
    path = state.locator.logs_dir / ("error.log" if errors else "harvester.log")
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
