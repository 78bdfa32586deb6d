"""Realtime subscription commands."""

import asyncio
import json
import sys

import click

from realtime_service.cli.utils import coro, error, info, section, success, warning
from realtime_service.core.settings import get_realtime_settings, get_supabase_settings
from realtime_service.infra.logging import set_log_context
from realtime_service.infra.realtime import (
    ChangeEvent,
    RealtimeError,
    RealtimeStats,
    SubscriptionConfig,
    SubscriptionHandler,
    create_project_subscription,
    create_realtime_manager,
    create_user_subscription,
)


@click.group(name="realtime")
def realtime() -> None:
    """Realtime subscription commands."""


def _echo_event(event: ChangeEvent) -> None:
    click.echo(
        json.dumps(
            {
                "type": event.event_type.value,
                "table": event.table,
                "schema": event.schema,
                "new": event.new,
                "old": event.old,
                "commit_timestamp": event.commit_timestamp,
            },
            default=str,
        )
    )


def _echo_stats(stats: RealtimeStats) -> None:
    section("Realtime statistics")
    click.echo(f"  {'active_subscriptions':24} = {stats.active_subscriptions}")
    click.echo(f"  {'total_messages':24} = {stats.total_messages}")
    click.echo(f"  {'reconnections':24} = {stats.reconnections}")
    click.echo(f"  {'errors':24} = {stats.errors}")


@realtime.command()
@click.argument("table")
@click.option("--schema", "db_schema", default=None, help="Database schema (default: REALTIME_DEFAULT_SCHEMA)")
@click.option(
    "--event",
    type=click.Choice(["INSERT", "UPDATE", "DELETE", "*"], case_sensitive=False),
    default="*",
    help="Event kind to listen to",
)
@click.option("--filter", "row_filter", default=None, help="Row filter, e.g. status=eq.open")
@click.option("--user-id", default=None, help="Only rows with user_id=<id>")
@click.option("--project-id", default=None, help="Only rows with project_id=<id>")
@click.option(
    "--duration",
    type=click.FloatRange(min=0.0, min_open=True),
    default=None,
    help="Seconds to watch (default: until interrupted)",
)
@coro
async def watch(
    table: str,
    db_schema: str | None,
    event: str,
    row_filter: str | None,
    user_id: str | None,
    project_id: str | None,
    duration: float | None,
) -> None:
    """Print change events for TABLE as JSON lines."""
    scoped = [opt for opt in (row_filter, user_id, project_id) if opt]
    if len(scoped) > 1:
        raise click.UsageError("Use only one of --filter, --user-id and --project-id")
    # The user and project helpers listen to every event in the default schema
    if (user_id or project_id) and (db_schema is not None or event != "*"):
        raise click.UsageError("--schema and --event cannot be combined with --user-id or --project-id")

    supabase = get_supabase_settings()
    if not supabase.is_configured:
        error("Supabase is not configured (NEXT_PUBLIC_SUPABASE_URL / NEXT_PUBLIC_SUPABASE_ANON_KEY)")
        sys.exit(1)

    try:
        manager = await create_realtime_manager(supabase, get_realtime_settings())
    except RealtimeError as e:
        error(f"Failed to start realtime manager: {e}")
        sys.exit(1)

    handler = SubscriptionHandler(
        on_insert=_echo_event,
        on_update=_echo_event,
        on_delete=_echo_event,
        on_error=lambda exc: warning(f"Subscription error: {exc}"),
    )

    failed = False
    try:
        if user_id:
            subscription_id = await create_user_subscription(manager, user_id, table, handler)
        elif project_id:
            subscription_id = await create_project_subscription(manager, project_id, table, handler)
        else:
            subscription_id = f"cli_{table}"
            config = SubscriptionConfig(
                table=table,
                schema=db_schema or manager.settings.default_schema,
                event=event.upper(),
                filter=row_filter,
            )
            await manager.subscribe(subscription_id, config, handler)

        set_log_context(subscription_id=subscription_id)
        success(f"Subscribed: {subscription_id}")
        info("Waiting for changes..." if duration is None else f"Watching for {duration:g}s...")

        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    except RealtimeError as e:
        error(f"Subscription failed: {e}")
        failed = True
    finally:
        stats = manager.get_stats()
        await manager.aclose()

    _echo_stats(stats)
    if failed:
        sys.exit(1)
