"""Tests for the CLI commands: argument parsing, output formatting, errors."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from pocket import __version__
from pocket.cli.app import _setup_registry, cli
from pocket.config.schema import PocketConfig
from pocket.core.errors import ModelOverloadedError, ToolConnectionError
from pocket.tools.registry import ProviderRegistry, RegistrationFailure
from tests.fixtures.providers import MockProvider, text_response, tool_response
from tests.fixtures.servers import descriptor, fake_connection


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config() -> PocketConfig:
    cfg = PocketConfig()
    cfg.model.api_key = "sk-test"
    cfg.logging.level = "WARNING"
    return cfg


def _invoke_chat(
    runner: CliRunner,
    config: PocketConfig,
    registry: ProviderRegistry,
    provider: MockProvider,
    lines: list[str],
    failures: list[RegistrationFailure] | None = None,
) -> Any:
    setup = AsyncMock(return_value=(registry, failures or []))
    with (
        patch("pocket.cli.app.load_config", return_value=config),
        patch("pocket.cli.app._setup_registry", setup),
        patch("pocket.cli.app._setup_provider", return_value=provider),
    ):
        return runner.invoke(
            cli, ["chat", "server.py"], input="\n".join(lines) + "\n"
        )


# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "Conversational wallet agent" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "pocket" in result.output
        assert __version__ in result.output

    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "chat" in result.output
        assert "tools" in result.output
        assert "serve" in result.output


# ── chat command ─────────────────────────────────────────────────


class TestChatCommand:
    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["chat", "--help"])
        assert result.exit_code == 0
        assert "SERVERS" in result.output
        assert "--stream" in result.output
        assert "--max-iterations" in result.output

    def test_missing_api_key(self, runner: CliRunner) -> None:
        with patch("pocket.cli.app.load_config", return_value=PocketConfig()):
            result = runner.invoke(cli, ["chat", "server.py"])
        assert result.exit_code == 1
        assert "ANTHROPIC_API_KEY is not set" in result.output

    def test_no_servers(self, runner: CliRunner, config: PocketConfig) -> None:
        with patch("pocket.cli.app.load_config", return_value=config):
            result = runner.invoke(cli, ["chat"])
        assert result.exit_code == 1
        assert "No tool servers given" in result.output

    def test_invalid_max_iterations(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["chat", "--max-iterations", "0", "server.py"])
        assert result.exit_code == 2

    def test_no_server_connected(
        self, runner: CliRunner, config: PocketConfig
    ) -> None:
        failure = RegistrationFailure(
            "server.py", ToolConnectionError("server.py", "connection refused")
        )
        result = _invoke_chat(
            runner, config, ProviderRegistry(), MockProvider(), [], [failure]
        )
        assert result.exit_code == 1
        assert "connection refused" in result.output
        assert "No tool servers could be connected" in result.output

    def test_answers_query(self, runner: CliRunner, config, registry) -> None:
        provider = MockProvider([text_response("You hold 2.5 SOL.")])
        result = _invoke_chat(runner, config, registry, provider, ["hi", "quit"])

        assert result.exit_code == 0
        assert "Pocket" in result.output
        assert "check-balance" in result.output
        assert "You hold 2.5 SOL." in result.output
        assert "1 iteration(s)" in result.output
        assert len(provider.call_log) == 1

    def test_shows_tool_activity(self, runner: CliRunner, config, registry) -> None:
        provider = MockProvider(
            [
                tool_response(("toolu_1", "check-balance", {"owner": "Owner1"})),
                text_response("Done."),
            ]
        )
        result = _invoke_chat(runner, config, registry, provider, ["go", "quit"])

        assert result.exit_code == 0
        assert "→ check-balance" in result.output
        assert "✓ check-balance" in result.output
        assert "Owner1 holds 2.5 SOL" in result.output

    def test_end_of_input_exits(self, runner: CliRunner, config, registry) -> None:
        result = _invoke_chat(runner, config, registry, MockProvider(), ["hi"])
        assert result.exit_code == 0
        assert "Mock response" in result.output

    def test_closes_servers_on_exit(
        self, runner: CliRunner, config, registry, wallet_connections
    ) -> None:
        _invoke_chat(runner, config, registry, MockProvider(), ["quit"])
        assert all(conn.server.closed for conn in wallet_connections)

    def test_history_commands(self, runner: CliRunner, config, registry) -> None:
        provider = MockProvider([text_response("2.5 SOL")])
        result = _invoke_chat(
            runner,
            config,
            registry,
            provider,
            ["balance?", "!history", "!clear", "!history", "exit"],
        )

        assert result.exit_code == 0
        assert "1. You: balance?" in result.output
        assert "Conversation history cleared." in result.output
        assert "No conversation history." in result.output

    def test_preview_before_next_query(
        self, runner: CliRunner, config, registry
    ) -> None:
        provider = MockProvider([text_response("first answer")])
        result = _invoke_chat(
            runner, config, registry, provider, ["one", "two", "quit"]
        )
        assert "Context from previous messages" in result.output
        assert "[1] You: one" in result.output

    def test_wallet_commands(
        self, runner: CliRunner, config, registry, wallet
    ) -> None:
        result = _invoke_chat(
            runner,
            config,
            registry,
            MockProvider(),
            [f"my wallet is {wallet}", "!wallet", "!wallet clear", "!wallet", "quit"],
        )

        assert result.exit_code == 0
        assert f"Wallet: {wallet}" in result.output
        assert "Wallet address forgotten." in result.output
        assert "No wallet address known yet." in result.output

    def test_stream_toggle(self, runner: CliRunner, config, registry) -> None:
        provider = MockProvider([text_response("streamed words here")])
        result = _invoke_chat(
            runner, config, registry, provider, ["!stream", "hi", "quit"]
        )

        assert "Streaming on." in result.output
        assert "streamed words here" in result.output
        assert provider.call_log[0]["method"] == "stream"

    def test_tools_command_in_chat(self, runner: CliRunner, config, registry) -> None:
        result = _invoke_chat(
            runner, config, registry, MockProvider(), ["!tools", "quit"]
        )
        assert "prepare-swap" in result.output
        assert "owner*" in result.output

    def test_model_error_keeps_chat_running(
        self, runner: CliRunner, config, registry
    ) -> None:
        provider = MockProvider(
            [ModelOverloadedError("mock", "down"), text_response("recovered")]
        )
        result = _invoke_chat(
            runner, config, registry, provider, ["hi", "again", "quit"]
        )

        assert result.exit_code == 0
        assert "Error: [mock] down" in result.output
        assert "recovered" in result.output

    def test_limit_notice(self, runner: CliRunner, config, registry) -> None:
        config.loop.max_iterations = 1
        provider = MockProvider(
            [tool_response(("toolu_1", "check-balance", {"owner": "Owner1"}))]
        )
        result = _invoke_chat(runner, config, registry, provider, ["go", "quit"])

        assert "Notice:" in result.output
        assert "allowed number of steps" in result.output


# ── tools command ────────────────────────────────────────────────


class TestToolsCommand:
    def test_lists_catalog(self, runner: CliRunner, config, registry) -> None:
        setup = AsyncMock(return_value=(registry, []))
        with (
            patch("pocket.cli.app.load_config", return_value=config),
            patch("pocket.cli.app._setup_registry", setup),
        ):
            result = runner.invoke(cli, ["tools", "a.py", "b.py"])

        assert result.exit_code == 0
        assert "check-balance" in result.output
        assert "prepare-swap" in result.output
        assert setup.await_args.args[1] == ("a.py", "b.py")

    def test_reports_failures(self, runner: CliRunner, config) -> None:
        failure = RegistrationFailure(
            "down.py", ToolConnectionError("down.py", "connection refused")
        )
        setup = AsyncMock(return_value=(ProviderRegistry(), [failure]))
        with (
            patch("pocket.cli.app.load_config", return_value=config),
            patch("pocket.cli.app._setup_registry", setup),
        ):
            result = runner.invoke(cli, ["tools", "down.py"])

        assert result.exit_code == 0
        assert "Warning:" in result.output
        assert "No tools available." in result.output


class TestSetupRegistry:
    async def test_unsupported_script_does_not_block_others(self) -> None:
        async def connect(endpoint: Any, timeout: float) -> Any:
            return fake_connection(endpoint.name, [descriptor("check-balance")])

        with patch("pocket.tools.registry._mcp_connect", side_effect=connect):
            registry, failures = await _setup_registry(
                PocketConfig(), ["bad.sh", "good.py"]
            )

        assert [f.endpoint for f in failures] == ["bad.sh"]
        assert registry.tool_names() == ["check-balance"]


# ── serve command ────────────────────────────────────────────────


class TestServeCommand:
    def test_starts_uvicorn(self, runner: CliRunner, config) -> None:
        with (
            patch("pocket.cli.app.load_config", return_value=config),
            patch("uvicorn.run") as mock_run,
        ):
            result = runner.invoke(cli, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        assert "Gateway: ws://127.0.0.1:9000/ws" in result.output
        assert mock_run.call_args.kwargs == {"host": "127.0.0.1", "port": 9000}

    def test_requires_api_key(self, runner: CliRunner) -> None:
        with (
            patch("pocket.cli.app.load_config", return_value=PocketConfig()),
            patch("uvicorn.run") as mock_run,
        ):
            result = runner.invoke(cli, ["serve"])

        assert result.exit_code == 1
        mock_run.assert_not_called()
