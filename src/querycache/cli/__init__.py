"""CLI commands for querycache.

Provides command-line interface using Typer:
- querycache clear: Clear cached queries for an entity or everything
- querycache stats: Show hit/miss statistics
- querycache serve: Run the webhook server

Usage:
    querycache --help
    querycache clear Account
    querycache clear --all --yes
    querycache serve --port 8080
"""

import typer

from querycache.cli.cache_cmd import clear, stats
from querycache.cli.serve import serve

# Main CLI application
app = typer.Typer(
    name="querycache",
    help="querycache: query result cache with change-driven invalidation",
    no_args_is_help=True,
)

app.command(name="clear")(clear)
app.command(name="stats")(stats)
app.command(name="serve")(serve)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
