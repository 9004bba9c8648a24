"""Command-line interface for climasync.

This module provides a Typer-based CLI for inspecting the synchronized views.

Commands:
- status: Show configuration and store statistics
- feed: Print the community climate-action feed
- leaderboard: Print the top users by points
- watch: Mount the live action feed and print it whenever it changes
- metrics: Print Prometheus metrics collected during the run

Example:
    $ climasync status
    $ climasync feed --limit 10
    $ climasync watch --seconds 60 --remote
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from climasync.api import AsyncStoreClient
from climasync.config import settings
from climasync.context import AppContext
from climasync.database import LocalStore
from climasync.errors import StoreError
from climasync.feeds import ActionFeed, Leaderboard
from climasync.interfaces import IRemoteStore
from climasync.logging import setup_logging
from climasync.metrics import generate_metrics_output
from climasync.notify import NotificationCenter
from climasync.telemetry import shutdown_telemetry
from climasync.views import ActionView

# Initialize CLI app
app = typer.Typer(
    name="climasync",
    help="Read-model synchronization core for the climate community app",
    add_completion=False,
)
console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    setup_logging(level="DEBUG" if verbose else settings.log_level, json_logs=settings.log_json)


def run_async(coro):
    """Run async coroutine in event loop."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_store(remote: bool, database: Optional[str] = None) -> AsyncIterator[IRemoteStore]:
    """Open the hosted store client or the local SQLite store, closing it afterwards."""
    if remote:
        async with AsyncStoreClient() as client:
            yield client
        return
    store = LocalStore(database)
    store.initialize()
    try:
        yield store
    finally:
        store.close()


def build_context(store: IRemoteStore) -> AppContext:
    return AppContext.create(store, notifier=NotificationCenter(console=console))


def render_feed(items: list[ActionView], title: str = "Community Feed") -> Table:
    table = Table(title=title)
    table.add_column("When", style="dim")
    table.add_column("Who", style="cyan")
    table.add_column("Category", style="green")
    table.add_column("Where")
    table.add_column("Comments", justify="right")
    table.add_column("Reactions", justify="right")

    for item in items:
        action = item.action
        where = ", ".join(part for part in (action.city, action.country) if part) or "-"
        table.add_row(
            action.created_at.strftime("%Y-%m-%d %H:%M") if action.created_at else "-",
            item.author.username if item.author else "unknown",
            action.category.value,
            where,
            str(item.comment_count),
            str(item.reactions.total),
        )
    return table


# Shared options
RemoteOption = typer.Option(False, "--remote", "-r", help="Use the hosted store instead of the local one")
DatabaseOption = typer.Option(None, "--database", "-d", help="Local SQLite path (defaults to settings)")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def status(
    remote: bool = RemoteOption,
    database: Optional[str] = DatabaseOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show configuration and store statistics.

    Examples:
        $ climasync status
    """
    configure_logging(verbose)

    console.print("[bold cyan]climasync status[/bold cyan]\n")

    config_table = Table(title="Configuration", show_header=False)
    config_table.add_column("Key", style="cyan")
    config_table.add_column("Value", style="yellow")
    config_table.add_row("Environment", settings.environment.value)
    config_table.add_row("Store", settings.supabase_url if remote else (database or settings.local_database_path))
    config_table.add_row("API Key", settings.redact_key())
    config_table.add_row("Request Timeout", f"{settings.request_timeout_seconds:g}s")
    config_table.add_row("Poll Interval", f"{settings.poll_interval_seconds:g}s")
    console.print(config_table)
    console.print()

    async def _status() -> None:
        async with open_store(remote, database) as store:
            stats = await store.rpc("get_admin_stats")

        stats_table = Table(title="Store Statistics")
        stats_table.add_column("Entity", style="cyan")
        stats_table.add_column("Count", justify="right", style="green")
        for key, value in (stats or {}).items():
            stats_table.add_row(key.replace("_", " ").title(), f"{value:,}")
        console.print(stats_table)

    try:
        run_async(_status())
    except StoreError as e:
        console.print(f"\n[bold red]Status failed: {e}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def feed(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of actions to show"),
    remote: bool = RemoteOption,
    database: Optional[str] = DatabaseOption,
    verbose: bool = VerboseOption,
) -> None:
    """Print the newest public climate actions.

    Examples:
        $ climasync feed --limit 10
    """
    configure_logging(verbose)

    async def _feed() -> bool:
        async with open_store(remote, database) as store:
            async with ActionFeed(build_context(store)) as view:
                if not view.state.loaded:
                    return False
                console.print(render_feed(view.value[:limit]))
        return True

    if not run_async(_feed()):
        raise typer.Exit(code=1)


@app.command()
def leaderboard(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of users to show"),
    remote: bool = RemoteOption,
    database: Optional[str] = DatabaseOption,
    verbose: bool = VerboseOption,
) -> None:
    """Print the top users by points.

    Examples:
        $ climasync leaderboard -n 5
    """
    configure_logging(verbose)

    async def _leaderboard() -> bool:
        async with open_store(remote, database) as store:
            async with Leaderboard(build_context(store)) as view:
                if not view.state.loaded:
                    return False
                table = Table(title="Leaderboard")
                table.add_column("#", justify="right")
                table.add_column("User", style="cyan")
                table.add_column("Points", justify="right", style="green")
                table.add_column("Streak", justify="right")
                for entry in view.value[:limit]:
                    table.add_row(
                        str(entry.rank),
                        entry.actor.username if entry.actor else entry.stats.user_id,
                        f"{entry.stats.total_points:,}",
                        str(entry.stats.current_streak),
                    )
                console.print(table)
        return True

    if not run_async(_leaderboard()):
        raise typer.Exit(code=1)


@app.command()
def watch(
    seconds: float = typer.Option(60.0, "--seconds", "-s", help="How long to stay subscribed"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of actions to show"),
    remote: bool = RemoteOption,
    database: Optional[str] = DatabaseOption,
    verbose: bool = VerboseOption,
) -> None:
    """Mount the live action feed and print it each time a refetch lands.

    Examples:
        $ climasync watch --seconds 120 --remote
    """
    configure_logging(verbose)

    async def _watch() -> None:
        async with open_store(remote, database) as store:
            async with ActionFeed(build_context(store)) as view:
                console.print(render_feed(view.value[:limit]))
                last_seq = view.state.applied_seq
                loop = asyncio.get_running_loop()
                deadline = loop.time() + seconds
                while loop.time() < deadline:
                    await asyncio.sleep(min(0.5, max(deadline - loop.time(), 0)))
                    if view.state.applied_seq != last_seq:
                        last_seq = view.state.applied_seq
                        console.print(render_feed(view.value[:limit], title="Community Feed (updated)"))

    run_async(_watch())


@app.command()
def metrics() -> None:
    """Print Prometheus metrics in text exposition format."""
    console.print(generate_metrics_output().decode("utf-8"), markup=False, highlight=False)


def main() -> None:
    """Main entry point for CLI."""
    try:
        app()
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    main()
