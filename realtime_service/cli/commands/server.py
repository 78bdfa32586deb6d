"""Server management commands."""

import sys

import click

from realtime_service.cli.utils import error, info
from realtime_service.core.settings import get_app_settings, get_logging_settings


@click.group(name="server")
def server() -> None:
    """Server management commands."""


@server.command()
@click.option(
    "--host",
    default=None,
    help="Host to bind (default: APP_HOST or 0.0.0.0)",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Port to bind (default: APP_PORT or 8000)",
)
@click.option(
    "--reload/--no-reload",
    default=False,
    help="Enable auto-reload on code changes",
)
def run(host: str | None, port: int | None, reload: bool) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_app_settings()
    log_settings = get_logging_settings()
    host = host or settings.host
    port = port or settings.port

    info(f"Server will run at: http://{host}:{port}")
    info(f"Environment: {settings.environment}")

    try:
        uvicorn.run(
            "realtime_service.app.main:app",
            host=host,
            port=port,
            reload=reload,
            access_log=settings.debug,
            log_level=log_settings.level.lower(),
        )
    except KeyboardInterrupt:
        info("Shutting down server...")
    except OSError as e:
        error(f"Failed to start server: {e}")
        sys.exit(1)
