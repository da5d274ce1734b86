"""Tool server connections over the MCP stdio transport.

Each tool server runs as a subprocess speaking MCP over stdin/stdout.
:class:`McpToolServer` wraps one ``mcp.ClientSession``;
:class:`ProviderConnection` pairs a live server with the catalog it
advertised at discovery time.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from pocket.core.errors import ToolConnectionError, ToolExecutionError
from pocket.tools.base import ToolDescriptor

if TYPE_CHECKING:
    from pocket.config.schema import ServerConfig
    from pocket.tools.base import ToolServer

logger = logging.getLogger(__name__)


# ── Endpoints ────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ServerEndpoint:
    """How to spawn one tool server."""

    name: str
    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] | None = field(default=None, hash=False)

    def __str__(self) -> str:
        return self.name


def _interpreter_for(script: str) -> str:
    """Pick the executable that runs a server script."""
    if script.endswith(".py"):
        if sys.executable:
            return sys.executable
        return "python" if sys.platform == "win32" else "python3"
    if script.endswith(".js"):
        return "node"
    msg = "Server script must be a .py or .js file"
    raise ToolConnectionError(script, msg)


def parse_endpoint(source: str | ServerConfig) -> ServerEndpoint:
    """Build a :class:`ServerEndpoint` from a script path or server config.

    Raises:
        ToolConnectionError: If the script type is not supported.
    """
    if isinstance(source, str):
        return ServerEndpoint(
            name=source, command=_interpreter_for(source), args=(source,)
        )

    name = source.name or source.endpoint
    env = dict(source.env) if source.env else None
    if source.command:
        return ServerEndpoint(
            name=name, command=source.command, args=tuple(source.args), env=env
        )
    return ServerEndpoint(
        name=name,
        command=_interpreter_for(source.endpoint),
        args=(source.endpoint, *source.args),
        env=env,
    )


# ── MCP transport ────────────────────────────────────────────────


def _flatten_content(content: list[Any]) -> str:
    """Flatten MCP content parts into text for the conversation."""
    texts: list[str] = []
    for part in content:
        part_type = getattr(part, "type", None)
        if part_type == "text":
            texts.append(part.text)
        elif part_type == "image":
            texts.append(f"[image: {getattr(part, 'mimeType', 'unknown')}]")
        elif part_type == "resource":
            resource = part.resource
            text = getattr(resource, "text", None)
            texts.append(text or f"[resource: {resource.uri}]")
    return "\n".join(texts)


class McpToolServer:
    """An MCP client session to one stdio tool server."""

    def __init__(self, endpoint: ServerEndpoint) -> None:
        self.endpoint = endpoint
        self._exit_stack = AsyncExitStack()
        self._session: ClientSession | None = None

    async def start(self) -> None:
        """Spawn the server subprocess and run the MCP handshake."""
        if self._session is not None:
            return
        params = StdioServerParameters(
            command=self.endpoint.command,
            args=list(self.endpoint.args),
            env=self.endpoint.env,
        )
        read, write = await self._exit_stack.enter_async_context(
            stdio_client(params)
        )
        session = await self._exit_stack.enter_async_context(
            ClientSession(read, write)
        )
        await session.initialize()
        self._session = session

    def _require_session(self) -> ClientSession:
        if self._session is None:
            msg = f"Tool server {self.endpoint} is not started"
            raise RuntimeError(msg)
        return self._session

    async def list_tools(self) -> list[ToolDescriptor]:
        result = await self._require_session().list_tools()
        return [
            ToolDescriptor(
                name=tool.name,
                description=tool.description or "",
                input_schema=dict(tool.inputSchema or {"type": "object"}),
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        result = await self._require_session().call_tool(name, arguments)
        text = _flatten_content(result.content)
        if result.isError:
            raise ToolExecutionError(name, text or "server reported an error")
        return text

    async def close(self) -> None:
        self._session = None
        await self._exit_stack.aclose()


# ── Connections ──────────────────────────────────────────────────


class ProviderConnection:
    """A live tool server together with its advertised catalog."""

    def __init__(
        self,
        name: str,
        server: ToolServer,
        tools: list[ToolDescriptor],
    ) -> None:
        self.name = name
        self.server = server
        self._tools: dict[str, ToolDescriptor] = {t.name: t for t in tools}

    @property
    def tools(self) -> list[ToolDescriptor]:
        """The catalog discovered for this server, in server order."""
        return list(self._tools.values())

    def advertises(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def descriptor(self, tool_name: str) -> ToolDescriptor | None:
        return self._tools.get(tool_name)

    async def call(self, tool_name: str, arguments: dict[str, Any]) -> str:
        """Invoke a tool on this server."""
        return await self.server.call_tool(tool_name, arguments)

    async def close(self) -> None:
        await self.server.close()

    def __repr__(self) -> str:
        return f"ProviderConnection({self.name!r}, tools={list(self._tools)})"


async def connect(
    endpoint: ServerEndpoint,
    *,
    timeout: float = 30.0,
) -> ProviderConnection:
    """Spawn a tool server, discover its catalog, and wrap it.

    Raises:
        ToolConnectionError: If the server cannot be started or discovery
            fails or exceeds ``timeout``. The transport is closed first.
    """
    server = McpToolServer(endpoint)
    try:
        async with asyncio.timeout(timeout):
            await server.start()
            tools = await server.list_tools()
    except TimeoutError as e:
        await _close_quietly(server)
        msg = f"discovery timed out after {timeout:g}s"
        raise ToolConnectionError(str(endpoint), msg) from e
    except Exception as e:
        await _close_quietly(server)
        raise ToolConnectionError(str(endpoint), str(e) or type(e).__name__) from e

    return ProviderConnection(endpoint.name, server, tools)


async def _close_quietly(server: McpToolServer) -> None:
    try:
        await server.close()
    except Exception:
        logger.debug("Error closing half-open tool server", exc_info=True)

