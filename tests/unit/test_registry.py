"""Tests for ProviderRegistry: registration, aggregation, routing."""

from __future__ import annotations

import logging

import pytest

from pocket.config.schema import ServerConfig
from pocket.core.errors import ToolConnectionError, UnknownToolError
from pocket.tools.connection import ServerEndpoint
from pocket.tools.registry import ProviderRegistry
from tests.fixtures.servers import FakeConnector, descriptor, fake_connection


def _endpoint(name: str) -> ServerEndpoint:
    return ServerEndpoint(name=name, command="python3", args=(name,))


# ── Routing across servers ───────────────────────────────────────


class TestTwoServers:
    async def test_all_tools_union(self):
        first = fake_connection("wallet.py", [descriptor("check-balance")])
        second = fake_connection("swap.py", [descriptor("prepare-swap")])
        registry = ProviderRegistry(
            connector=FakeConnector({"wallet.py": first, "swap.py": second})
        )
        await registry.register(_endpoint("wallet.py"))
        await registry.register(_endpoint("swap.py"))

        assert [t.name for t in registry.all_tools()] == [
            "check-balance",
            "prepare-swap",
        ]
        assert registry.resolve("check-balance") is first
        assert registry.resolve("prepare-swap") is second
        assert len(registry) == 2

    async def test_register_returns_catalog(self):
        conn = fake_connection("wallet.py", [descriptor("a"), descriptor("b")])
        registry = ProviderRegistry(connector=FakeConnector({"wallet.py": conn}))
        tools = await registry.register(_endpoint("wallet.py"))
        assert [t.name for t in tools] == ["a", "b"]

    def test_catalog_order_follows_registration(self, registry):
        assert registry.tool_names() == [
            "check-balance",
            "check-token-balance",
            "prepare-swap",
        ]

    def test_descriptor_lookup(self, registry):
        desc = registry.descriptor("check-balance")
        assert desc.input_schema["required"] == ["owner"]

    def test_contains(self, registry):
        assert "prepare-swap" in registry
        assert "foo" not in registry


# ── Unknown tools ────────────────────────────────────────────────


class TestUnknownTool:
    def test_resolve_unknown_raises(self, registry):
        with pytest.raises(UnknownToolError) as exc_info:
            registry.resolve("foo")
        assert exc_info.value.tool_name == "foo"

    def test_descriptor_unknown_raises(self, registry):
        with pytest.raises(UnknownToolError):
            registry.descriptor("foo")

    def test_empty_registry(self):
        registry = ProviderRegistry()
        assert registry.all_tools() == []
        with pytest.raises(UnknownToolError):
            registry.resolve("check-balance")


# ── Duplicate names ──────────────────────────────────────────────


class TestDuplicates:
    def test_first_registered_wins(self):
        first = fake_connection("a.py", [descriptor("check-balance")])
        second = fake_connection("b.py", [descriptor("check-balance")])
        registry = ProviderRegistry()
        registry.add(first)
        registry.add(second)

        assert registry.resolve("check-balance") is first
        assert registry.tool_names() == ["check-balance"]
        assert len(registry) == 2

    def test_shadowing_logs_warning(self, caplog):
        registry = ProviderRegistry()
        registry.add(fake_connection("a.py", [descriptor("check-balance")]))
        with caplog.at_level(logging.WARNING, logger="pocket.tools.registry"):
            registry.add(fake_connection("b.py", [descriptor("check-balance")]))
        assert "check-balance" in caplog.text
        assert "b.py" in caplog.text

    def test_non_duplicates_from_shadowed_server_kept(self):
        registry = ProviderRegistry()
        registry.add(fake_connection("a.py", [descriptor("x")]))
        second = fake_connection("b.py", [descriptor("x"), descriptor("y")])
        registry.add(second)
        assert registry.tool_names() == ["x", "y"]
        assert registry.resolve("y") is second


# ── register_all ─────────────────────────────────────────────────


class TestRegisterAll:
    async def test_failure_does_not_block_others(self, caplog):
        good = fake_connection("good.py", [descriptor("check-balance")])
        connector = FakeConnector({"good.py": good})
        registry = ProviderRegistry(connector=connector)

        with caplog.at_level(logging.ERROR, logger="pocket.tools.registry"):
            failures = await registry.register_all(
                [_endpoint("down.py"), _endpoint("good.py")]
            )

        assert connector.attempts == ["down.py", "good.py"]
        assert len(failures) == 1
        assert failures[0].endpoint == "down.py"
        assert isinstance(failures[0].error, ToolConnectionError)
        assert registry.tool_names() == ["check-balance"]
        assert "down.py" in caplog.text

    async def test_all_fail(self):
        registry = ProviderRegistry(connector=FakeConnector({}))
        failures = await registry.register_all([_endpoint("a.py"), _endpoint("b.py")])
        assert [f.endpoint for f in failures] == ["a.py", "b.py"]
        assert len(registry) == 0

    async def test_unsupported_script_fails_alone(self):
        good = fake_connection("good.py", [descriptor("check-balance")])
        connector = FakeConnector({"good.py": good})
        registry = ProviderRegistry(connector=connector)

        failures = await registry.register_all(["bad.sh", "good.py"])

        assert connector.attempts == ["good.py"]
        assert [f.endpoint for f in failures] == ["bad.sh"]
        assert ".py or .js" in str(failures[0].error)
        assert registry.tool_names() == ["check-balance"]

    async def test_server_configs_resolved_per_entry(self):
        good = fake_connection("wallet", [descriptor("check-balance")])
        connector = FakeConnector({"wallet": good})
        registry = ProviderRegistry(connector=connector)
        sources = [
            ServerConfig(name="broken", endpoint="server.rb"),
            ServerConfig(name="wallet", endpoint="wallet.py"),
        ]

        failures = await registry.register_all(sources)

        assert [f.endpoint for f in failures] == ["broken"]
        assert registry.tool_names() == ["check-balance"]

    async def test_register_propagates_connection_error(self):
        registry = ProviderRegistry(connector=FakeConnector({}))
        with pytest.raises(ToolConnectionError):
            await registry.register(_endpoint("down.py"))


# ── Lifecycle ────────────────────────────────────────────────────


class TestClose:
    async def test_close_closes_every_server(self, registry, wallet_connections):
        await registry.close()
        assert all(c.server.closed for c in wallet_connections)
        assert len(registry) == 0
        assert registry.all_tools() == []

    async def test_close_error_is_logged_not_raised(self, caplog):
        conn = fake_connection("a.py", [descriptor("x")])

        async def broken_close() -> None:
            raise RuntimeError("pipe closed")

        conn.server.close = broken_close  # type: ignore[method-assign]
        other = fake_connection("b.py", [descriptor("y")])
        registry = ProviderRegistry()
        registry.add(conn)
        registry.add(other)

        with caplog.at_level(logging.WARNING, logger="pocket.tools.registry"):
            await registry.close()

        assert other.server.closed
        assert "a.py" in caplog.text
