"""Tests for the wxomcp command line."""

from __future__ import annotations

import json
import logging
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from click.testing import CliRunner

from wxomcp import __version__
from wxomcp.cli.main import cli
from wxomcp.core.agents import AGENTS_PATH
from wxomcp.core.auth import CachedToken
from wxomcp.core.errors import AuthenticationFailed, ResourceNotFound, RunTimeout
from wxomcp.core.runs.invoker import RUNS_PATH
from wxomcp.models.run import PollPolicy, PollStats, RunHandle
from wxomcp.utils.config import ENV_VARS


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def configured_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("WO_API_KEY", "test-api-key")
    monkeypatch.setenv("WO_INSTANCE_URL", "https://api.example.com/instances/abc")
    return tmp_path


@pytest.fixture
def empty_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for var in ENV_VARS.values():
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return tmp_path


def fake_services(**agent_methods) -> SimpleNamespace:
    return SimpleNamespace(
        agents=SimpleNamespace(**agent_methods),
        aclose=AsyncMock(),
    )


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "check", "invoke", "config"):
        assert command in result.output


class TestConfigCommand:
    def test_json(self, runner, monkeypatch):
        monkeypatch.setattr(
            "wxomcp.utils.config._resolve_wxomcp_command", lambda: "/opt/bin/wxomcp"
        )

        result = runner.invoke(cli, ["config", "--name", "wxo-prod"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload == {
            "mcpServers": {"wxo-prod": {"command": "/opt/bin/wxomcp", "args": ["serve"]}}
        }

    def test_yaml_with_env_file(self, runner, tmp_path):
        env_file = tmp_path / "wxo.env"
        env_file.write_text("")

        result = runner.invoke(cli, ["--env-file", str(env_file), "config", "--format", "yaml"])

        assert result.exit_code == 0
        assert "mcpServers:" in result.output
        assert "--env-file" in result.output
        assert "serve" in result.output

    def test_env_file_must_exist(self, runner, tmp_path):
        result = runner.invoke(cli, ["--env-file", str(tmp_path / "missing.env"), "config"])
        assert result.exit_code == 2


class TestCheckCommand:
    def test_missing_settings(self, runner, empty_env):
        result = runner.invoke(cli, ["check"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Missing required" in result.output
        assert "not set" in result.output

    def test_token_acquired(self, runner, configured_env, monkeypatch):
        token = CachedToken("tok", expires_at=time.time() + 3600)
        monkeypatch.setattr("wxomcp.cli.check._acquire", AsyncMock(return_value=token))

        result = runner.invoke(cli, ["check"])

        assert result.exit_code == 0
        assert "Token acquired" in result.output
        assert "test-api-key" not in result.output

    def test_authentication_failure(self, runner, configured_env, monkeypatch):
        monkeypatch.setattr(
            "wxomcp.cli.check._acquire",
            AsyncMock(side_effect=AuthenticationFailed(400, "[bad] key")),
        )

        result = runner.invoke(cli, ["check"])

        assert result.exit_code == 1
        assert "IAM token request failed: 400 [bad] key" in result.output


class TestInvokeCommand:
    def patch_services(self, monkeypatch, services) -> MagicMock:
        factory = MagicMock()
        factory.from_settings.return_value = services
        monkeypatch.setattr("wxomcp.cli.invoke.OrchestrateServices", factory)
        return factory

    def test_prints_reply_json(self, runner, configured_env, monkeypatch):
        reply = {"success": True, "response": "7.32", "thread_id": "t1", "run_id": "r1"}
        services = fake_services(
            resolve_agent_id=AsyncMock(return_value="a-1"),
            invoke_agent=AsyncMock(return_value=reply),
        )
        self.patch_services(monkeypatch, services)

        result = runner.invoke(
            cli,
            ["invoke", "CurrencyAgent", "1 EUR in NOK?", "--interval", "0.5", "--max-attempts", "3"],
        )

        assert result.exit_code == 0
        assert json.loads(result.output) == reply
        services.agents.resolve_agent_id.assert_awaited_once_with(agent_name="CurrencyAgent")
        services.agents.invoke_agent.assert_awaited_once_with(
            "a-1",
            None,
            "1 EUR in NOK?",
            policy=PollPolicy(interval_seconds=0.5, max_attempts=3),
        )
        services.aclose.assert_awaited_once()

    def test_unknown_name_is_used_as_id(self, runner, configured_env, monkeypatch):
        services = fake_services(
            resolve_agent_id=AsyncMock(side_effect=ResourceNotFound("Agent", "3f2c-id")),
            invoke_agent=AsyncMock(return_value={"success": True}),
        )
        self.patch_services(monkeypatch, services)

        result = runner.invoke(cli, ["invoke", "3f2c-id", "hello"])

        assert result.exit_code == 0
        args, kwargs = services.agents.invoke_agent.call_args
        assert args[0] == "3f2c-id"
        assert kwargs["policy"] == PollPolicy(interval_seconds=2.0, max_attempts=15)

    def test_timeout_reports_thread(self, runner, configured_env, monkeypatch):
        timeout = RunTimeout(RunHandle(thread_id="t9", run_id="r9"), PollStats(attempts=15))
        services = fake_services(
            resolve_agent_id=AsyncMock(return_value="a-1"),
            invoke_agent=AsyncMock(side_effect=timeout),
        )
        self.patch_services(monkeypatch, services)

        result = runner.invoke(cli, ["invoke", "a", "hello"])

        assert result.exit_code == 1
        assert "Timed out waiting for assistant response." in result.output
        assert "(thread t9, 15 polls)" in result.output
        services.aclose.assert_awaited_once()

    def test_run_start_transport_error(self, runner, configured_env, monkeypatch, services, fake):
        fake.add("GET", AGENTS_PATH, 200, {"assistants": [{"id": "a-1", "name": "a1"}]})
        fake.fail("POST", RUNS_PATH, httpx.ConnectError("refused"))
        self.patch_services(monkeypatch, services)

        result = runner.invoke(cli, ["invoke", "a1", "hi"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error: Failed to start run: None refused" in result.output

    def test_empty_message(self, runner, configured_env, monkeypatch, services, fake):
        fake.add("GET", AGENTS_PATH, 200, {"assistants": [{"id": "a-1", "name": "a1"}]})
        self.patch_services(monkeypatch, services)

        result = runner.invoke(cli, ["invoke", "a1", ""])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error: message is required" in result.output
        assert fake.calls("POST", RUNS_PATH) == []

    def test_missing_settings(self, runner, empty_env, monkeypatch):
        factory = self.patch_services(monkeypatch, fake_services())

        result = runner.invoke(cli, ["invoke", "a", "hello"])

        assert result.exit_code == 1
        assert "Missing required environment variables" in result.output
        factory.from_settings.assert_not_called()

    def test_rejects_zero_attempts(self, runner):
        result = runner.invoke(cli, ["invoke", "a", "hello", "--max-attempts", "0"])
        assert result.exit_code == 2


class TestServeCommand:
    def test_mcp_not_installed(self, runner, monkeypatch):
        monkeypatch.setattr("wxomcp.cli.serve._mcp_available", lambda: False)

        result = runner.invoke(cli, ["serve"])

        assert result.exit_code == 1
        assert "mcp not installed" in result.output

    def test_runs_server_with_loaded_settings(self, runner, configured_env, monkeypatch):
        run = MagicMock()
        monkeypatch.setattr("wxomcp.mcp.server.run_mcp_server", run)

        result = runner.invoke(cli, ["serve"])

        assert result.exit_code == 0
        (settings,) = run.call_args.args
        assert settings.api_key == "test-api-key"
        assert settings.instance_url == "https://api.example.com/instances/abc"
