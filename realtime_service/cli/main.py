"""Main CLI entry point for realtime-service management commands."""

import click

from realtime_service.cli.commands import config, realtime, server
from realtime_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="1.0.0", prog_name="realtime-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Realtime Service CLI - Supabase realtime subscriptions.

    \b
    Command Groups:
      server     Run the API server
      realtime   Watch table changes from the terminal
      config     Configuration management

    \b
    Quick Start:
      realtime-service config show
      realtime-service realtime watch orders --user-id 42 --duration 60
      realtime-service server run --port 8080
    """
    ctx.ensure_object(dict)


cli.add_command(server.server)
cli.add_command(realtime.realtime)
cli.add_command(config.config)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
