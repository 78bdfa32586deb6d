"""Configuration commands."""

import json

import click

from realtime_service.cli.utils import info, success, warning
from realtime_service.core.settings import (
    get_app_settings,
    get_logging_settings,
    get_realtime_settings,
    get_supabase_settings,
)

MASK = "***"


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""


def _build_config(show_secrets: bool) -> dict[str, dict[str, object]]:
    app = get_app_settings()
    logs = get_logging_settings()
    supabase = get_supabase_settings()
    realtime = get_realtime_settings()

    anon_key: object = None
    if supabase.anon_key is not None:
        anon_key = supabase.anon_key.get_secret_value() if show_secrets else MASK

    return {
        "app": {
            "name": app.service_name,
            "version": app.version,
            "environment": app.environment,
            "debug": app.debug,
            "host": app.host,
            "port": app.port,
            "api_prefix": app.api_prefix,
        },
        "logging": {
            "level": logs.level,
            "json_logs": logs.json_logs,
            "file_path": logs.effective_file_path,
        },
        "supabase": {
            "url": supabase.url,
            "anon_key": anon_key,
            "configured": supabase.is_configured,
        },
        "realtime": realtime.model_dump(),
    }


@config.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="table",
    help="Output format",
)
@click.option(
    "--show-secrets/--hide-secrets",
    default=False,
    help="Show sensitive values (API keys)",
)
def show(output_format: str, show_secrets: bool) -> None:
    """Display current configuration settings."""
    info("Loading configuration...")
    if not show_secrets:
        warning("Secrets are hidden. Use --show-secrets to display them.")

    config_dict = _build_config(show_secrets)

    if output_format == "json":
        click.echo(json.dumps(config_dict, indent=2, default=str))
    else:
        click.echo("\n" + "=" * 80)
        click.echo("CONFIGURATION SETTINGS")
        click.echo("=" * 80)
        for section_name, values in config_dict.items():
            click.echo(f"\n[{section_name.upper()}]")
            for key, value in values.items():
                click.echo(f"  {key:30} = {value}")
        click.echo("\n" + "=" * 80)

    success("Configuration loaded successfully!")
