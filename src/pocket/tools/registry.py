"""Provider registry: one live connection per tool server.

Aggregates the catalogs of every connected tool server and routes tool
names back to the server that advertised them. When two servers
advertise the same name, the first registered server wins and the
duplicate is left out of the aggregate catalog with a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pocket.core.errors import ToolConnectionError, UnknownToolError
from pocket.tools.connection import ServerEndpoint, parse_endpoint
from pocket.tools.connection import connect as _mcp_connect

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from pocket.config.schema import ServerConfig
    from pocket.tools.base import ToolDescriptor
    from pocket.tools.connection import ProviderConnection

    Connector = Callable[[ServerEndpoint], Awaitable[ProviderConnection]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegistrationFailure:
    """A server that could not be registered."""

    endpoint: str
    error: ToolConnectionError


def _source_name(source: ServerEndpoint | str | ServerConfig) -> str:
    if isinstance(source, (ServerEndpoint, str)):
        return str(source)
    return source.name or source.endpoint


class ProviderRegistry:
    """Registry of connected tool servers and their catalogs.

    Connections are shared read-only across all sessions once startup
    completes.
    """

    def __init__(
        self,
        *,
        connector: Connector | None = None,
        discovery_timeout: float = 30.0,
    ) -> None:
        self._connector = connector
        self._discovery_timeout = discovery_timeout
        self._connections: list[ProviderConnection] = []
        # tool name -> (owning connection, descriptor); first registered wins
        self._index: dict[str, tuple[ProviderConnection, ToolDescriptor]] = {}

    # ── Registration ─────────────────────────────────────────────

    async def register(self, endpoint: ServerEndpoint) -> list[ToolDescriptor]:
        """Connect to a tool server, discover its tools, and store it.

        Returns:
            The descriptors the server advertised.

        Raises:
            ToolConnectionError: If the server is unreachable or discovery
                fails or times out.
        """
        if self._connector is not None:
            connection = await self._connector(endpoint)
        else:
            connection = await _mcp_connect(
                endpoint, timeout=self._discovery_timeout
            )
        self.add(connection)
        logger.info(
            "Connected to tool server %s with tools: %s",
            connection.name,
            ", ".join(t.name for t in connection.tools) or "(none)",
        )
        return connection.tools

    def add(self, connection: ProviderConnection) -> None:
        """Store an already-connected server and index its catalog."""
        self._connections.append(connection)
        for descriptor in connection.tools:
            existing = self._index.get(descriptor.name)
            if existing is not None:
                logger.warning(
                    "Tool %r from %s shadows the one from %s; keeping %s",
                    descriptor.name,
                    connection.name,
                    existing[0].name,
                    existing[0].name,
                )
                continue
            self._index[descriptor.name] = (connection, descriptor)

    async def register_all(
        self, sources: Iterable[ServerEndpoint | str | ServerConfig]
    ) -> list[RegistrationFailure]:
        """Register every endpoint independently.

        Script paths and server configs are resolved one at a time, so an
        unsupported script fails only its own entry. A failing endpoint
        is logged and skipped; it never prevents the others from
        registering.

        Returns:
            One entry per endpoint that failed.
        """
        failures: list[RegistrationFailure] = []
        for source in sources:
            name = _source_name(source)
            try:
                if isinstance(source, ServerEndpoint):
                    endpoint = source
                else:
                    endpoint = parse_endpoint(source)
                await self.register(endpoint)
            except ToolConnectionError as e:
                logger.error("Failed to connect to tool server %s: %s", name, e)
                failures.append(RegistrationFailure(name, e))
        return failures

    # ── Discovery ────────────────────────────────────────────────

    def all_tools(self) -> list[ToolDescriptor]:
        """Aggregate catalog across all live connections.

        Ordered by registration, then by each server's catalog order.
        Shadowed duplicates are excluded.
        """
        return [descriptor for _, descriptor in self._index.values()]

    def tool_names(self) -> list[str]:
        return list(self._index)

    def descriptor(self, tool_name: str) -> ToolDescriptor:
        """Look up a tool's descriptor.

        Raises:
            UnknownToolError: If no connection advertises the name.
        """
        return self._lookup(tool_name)[1]

    @property
    def connections(self) -> list[ProviderConnection]:
        return list(self._connections)

    # ── Routing ──────────────────────────────────────────────────

    def resolve(self, tool_name: str) -> ProviderConnection:
        """Return the connection that owns ``tool_name``.

        Raises:
            UnknownToolError: If no connection advertises the name.
        """
        return self._lookup(tool_name)[0]

    def _lookup(self, tool_name: str) -> tuple[ProviderConnection, ToolDescriptor]:
        entry = self._index.get(tool_name)
        if entry is None:
            raise UnknownToolError(tool_name)
        return entry

    # ── Lifecycle ────────────────────────────────────────────────

    async def close(self) -> None:
        """Close every connection. Errors are logged, not raised."""
        for connection in reversed(self._connections):
            try:
                await connection.close()
            except Exception:
                logger.warning(
                    "Error closing tool server %s", connection.name, exc_info=True
                )
        self._connections.clear()
        self._index.clear()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._index
