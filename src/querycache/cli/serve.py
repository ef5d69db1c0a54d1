"""CLI command for running the webhook server.

Usage:
    querycache serve
    querycache serve --port 8080 --host 0.0.0.0
"""

from __future__ import annotations

import typer


def serve(
    host: str = typer.Option(
        "0.0.0.0",  # nosec B104 - intentional for container deployments
        "--host",
        "-h",
        help="Host to bind to",
    ),
    port: int = typer.Option(
        8080,
        "--port",
        "-p",
        help="Port to listen on",
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
) -> None:
    """Run the change notification webhook server."""
    import uvicorn

    typer.echo("Starting querycache webhook server...")
    typer.echo(f"  Host: {host}")
    typer.echo(f"  Port: {port}")
    typer.echo()

    uvicorn.run(
        app="querycache.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=log_level.lower(),
    )
