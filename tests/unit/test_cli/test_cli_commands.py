"""Tests for the realtime-service CLI."""

from __future__ import annotations

import json
from unittest.mock import patch

from click.testing import CliRunner
from pydantic import SecretStr
import pytest

from realtime_service.cli.commands.realtime import _echo_event
from realtime_service.cli.main import cli
from realtime_service.core.settings import SupabaseSettings
from realtime_service.infra.realtime import (
    ChangeEvent,
    ChangeEventType,
    ChannelStatus,
    RealtimeManager,
)


@pytest.fixture
def runner():
    return CliRunner()


def _json_block(output: str) -> dict:
    return json.loads(output[output.index("{") : output.rindex("}") + 1])


class TestConfigShow:
    """Tests for `config show`."""

    def test_json_masks_anon_key(self, runner, monkeypatch):
        monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_ANON_KEY", "anon-secret")

        result = runner.invoke(cli, ["config", "show", "--format", "json"])

        assert result.exit_code == 0
        data = _json_block(result.output)
        assert data["supabase"]["url"] == "https://demo.supabase.co"
        assert data["supabase"]["anon_key"] == "***"
        assert data["supabase"]["configured"] is True
        assert data["realtime"]["max_reconnect_attempts"] == 5
        assert "anon-secret" not in result.output

    def test_show_secrets(self, runner, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-secret")

        result = runner.invoke(cli, ["config", "show", "--format", "json", "--show-secrets"])

        assert _json_block(result.output)["supabase"]["anon_key"] == "anon-secret"

    def test_table_format(self, runner):
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "[REALTIME]" in result.output
        assert "[SUPABASE]" in result.output


class TestServerRun:
    def test_run_invokes_uvicorn(self, runner):
        with patch("uvicorn.run") as uvicorn_run:
            result = runner.invoke(cli, ["server", "run", "--host", "127.0.0.1", "--port", "9000"])

        assert result.exit_code == 0
        uvicorn_run.assert_called_once()
        args, kwargs = uvicorn_run.call_args
        assert args == ("realtime_service.app.main:app",)
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9000
        assert kwargs["reload"] is False


class TestRealtimeWatch:
    """Tests for `realtime watch`."""

    @pytest.fixture
    def configured(self):
        settings = SupabaseSettings(url="https://demo.supabase.co", anon_key=SecretStr("anon"))
        with patch(
            "realtime_service.cli.commands.realtime.get_supabase_settings",
            return_value=settings,
        ):
            yield settings

    @pytest.fixture
    def fake_manager(self, channel_factory, realtime_settings):
        async def _build(supabase, settings):
            return RealtimeManager(channel_factory, settings=realtime_settings)

        with patch(
            "realtime_service.cli.commands.realtime.create_realtime_manager",
            side_effect=_build,
        ) as build:
            yield build

    def test_requires_supabase(self, runner):
        result = runner.invoke(cli, ["realtime", "watch", "orders", "--duration", "0.01"])

        assert result.exit_code == 1
        assert "Supabase is not configured" in result.output

    def test_rejects_multiple_scopes(self, runner):
        result = runner.invoke(
            cli, ["realtime", "watch", "orders", "--user-id", "1", "--project-id", "2"]
        )

        assert result.exit_code == 2

    @pytest.mark.parametrize(
        "extra",
        [
            ["--user-id", "42", "--event", "insert"],
            ["--project-id", "7", "--schema", "app"],
        ],
    )
    def test_rejects_event_or_schema_with_scope(self, runner, extra):
        result = runner.invoke(cli, ["realtime", "watch", "orders", *extra])

        assert result.exit_code == 2
        assert "cannot be combined" in result.output

    def test_watch_table(self, runner, configured, fake_manager, channel_factory):
        result = runner.invoke(
            cli,
            ["realtime", "watch", "orders", "--event", "insert", "--filter", "status=eq.open", "--duration", "0.01"],
        )

        assert result.exit_code == 0, result.output
        assert "Subscribed: cli_orders" in result.output
        assert "total_messages" in result.output
        config = channel_factory.last.config
        assert config.event.value == "INSERT"
        assert config.filter == "status=eq.open"
        assert channel_factory.closed

    def test_watch_user_rows(self, runner, configured, fake_manager, channel_factory):
        result = runner.invoke(
            cli, ["realtime", "watch", "orders", "--user-id", "42", "--duration", "0.01"]
        )

        assert result.exit_code == 0, result.output
        assert "Subscribed: user_42_orders" in result.output
        assert channel_factory.last.config.filter == "user_id=eq.42"

    def test_subscription_failure_exits_nonzero(self, runner, configured, fake_manager, channel_factory):
        channel_factory.default_status = ChannelStatus.CHANNEL_ERROR

        result = runner.invoke(cli, ["realtime", "watch", "orders", "--duration", "0.01"])

        assert result.exit_code == 1
        assert "Subscription failed" in result.output
        assert channel_factory.closed


def test_echo_event_prints_json_line(capsys):
    _echo_event(ChangeEvent(ChangeEventType.INSERT, "orders", new={"id": 1}, commit_timestamp="t"))

    line = json.loads(capsys.readouterr().out)
    assert line == {
        "type": "INSERT",
        "table": "orders",
        "schema": "public",
        "new": {"id": 1},
        "old": None,
        "commit_timestamp": "t",
    }


def test_version_option(runner):
    result = runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "1.0.0" in result.output
