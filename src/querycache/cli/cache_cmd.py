"""CLI commands for inspecting and clearing the query cache.

Usage:
    querycache clear Account
    querycache clear --all --yes
    querycache clear Account --stats
    querycache stats

These commands act on the configured cache store, so they are only useful
with a shared driver (QUERYCACHE_CACHE_DRIVER=redis).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import typer

if TYPE_CHECKING:
    from rich.console import Console

    from querycache.cache import QueryCache
    from querycache.config import Settings


def clear(
    entity: str | None = typer.Argument(
        None,
        help="Entity whose cached queries should be cleared (e.g. Account)",
    ),
    all_entries: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Clear every cached query",
    ),
    show_stats: bool = typer.Option(
        False,
        "--stats",
        "-s",
        help="Show cache statistics before clearing",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
) -> None:
    """Clear cached query results for an entity or for everything."""
    from rich.console import Console

    from querycache.config import Settings

    console = Console()
    settings = Settings()

    if not settings.cache_enabled:
        console.print("[yellow]Query cache is disabled.[/yellow]")
        console.print("Enable it with QUERYCACHE_CACHE_ENABLED=true")
        return

    if not entity and not all_entries and not show_stats:
        console.print("[red]Give an entity name, --all, or --stats.[/red]")
        raise typer.Exit(code=2)

    if all_entries and not yes:
        typer.confirm("Are you sure you want to clear ALL cached queries?", abort=True)

    asyncio.run(_clear(settings, console, entity, all_entries, show_stats))


def stats() -> None:
    """Show cache hit/miss statistics."""
    from rich.console import Console

    from querycache.config import Settings

    asyncio.run(_stats(Settings(), Console()))


async def _open_cache(settings: Settings, console: Console) -> QueryCache:
    from querycache.cache import QueryCache, create_store
    from querycache.config import CacheDriver

    if settings.cache_driver != CacheDriver.REDIS:
        console.print(
            f"[yellow]Cache driver is '{settings.cache_driver.value}'; "
            "an in-process store is empty in a new process.[/yellow]"
        )
    return QueryCache(await create_store(settings), settings)


async def _clear(
    settings: Settings,
    console: Console,
    entity: str | None,
    all_entries: bool,
    show_stats: bool,
) -> None:
    """Async implementation of clear command."""
    from querycache.cache import close_redis

    cache = await _open_cache(settings, console)
    try:
        if show_stats:
            _print_statistics(console, await cache.statistics.get_statistics())

        if all_entries:
            console.print("Clearing all cached queries...")
            await cache.flush_all()
            await cache.statistics.reset()
            console.print("[green]✓ All cached queries cleared[/green]")
        elif entity:
            console.print(f"Clearing cached queries for: {entity}")
            await cache.flush_object(entity)
            console.print(f"[green]✓ Cache cleared for {entity}[/green]")
    finally:
        await close_redis()


async def _stats(settings: Settings, console: Console) -> None:
    """Async implementation of stats command."""
    from querycache.cache import close_redis

    cache = await _open_cache(settings, console)
    try:
        _print_statistics(console, await cache.statistics.get_statistics())
    finally:
        await close_redis()


def _print_statistics(console: Console, stats: dict[str, Any]) -> None:
    from rich.table import Table

    if not stats["enabled"]:
        console.print(stats["message"])
        return

    table = Table(title="Query Cache Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Cache Hits", f"{stats['hits']:,}")
    table.add_row("Cache Misses", f"{stats['misses']:,}")
    table.add_row("Total Queries", f"{stats['total']:,}")
    table.add_row("Hit Rate", f"{stats['hit_rate_percentage']}%")
    console.print(table)
