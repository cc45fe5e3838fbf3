"""HTTP server command."""

import click
import uvicorn

from account_service.cli.utils import info
from account_service.core.settings import get_app_settings


@click.command()
@click.option("--host", default=None, help="Host to bind (default: from settings)")
@click.option("--port", default=None, type=int, help="Port to bind (default: from settings)")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload on code changes")
@click.option(
    "--log-level",
    default="info",
    type=click.Choice(["critical", "error", "warning", "info", "debug", "trace"]),
    help="Log level",
)
def server(host: str | None, port: int | None, reload: bool, log_level: str) -> None:
    """Run the HTTP server (health and metrics endpoints, event bus task)."""
    settings = get_app_settings()
    host = host or settings.host
    port = port or settings.port

    info(f"Server will run at: http://{host}:{port}")
    info(f"Environment: {settings.environment}")
    uvicorn.run(
        "account_service.app.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
        log_config=None,
    )
