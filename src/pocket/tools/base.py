"""Tool data types and the tool server protocol.

A *tool server* is an external process (an MCP server) advertising a
catalog of named, schema-described tools. These types are shared by the
registry, the invoker, and the reasoning loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pocket.providers.base import ToolResultBlock


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """A tool advertised by a server. Immutable after discovery."""

    name: str
    description: str
    input_schema: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_api(self) -> dict[str, Any]:
        """Render as a model API tool definition."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``id`` correlates the eventual :class:`ToolResult` with this request
    and must be carried through unchanged.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Outcome of a tool call: a success payload or a failure message."""

    tool_call_id: str
    tool_name: str
    content: str
    is_error: bool = False
    error_type: str | None = None  # e.g. "UnknownToolError"
    arguments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(
        cls,
        call: ToolCall,
        content: str,
        arguments: dict[str, Any] | None = None,
    ) -> ToolResult:
        return cls(
            tool_call_id=call.id,
            tool_name=call.name,
            content=content,
            arguments=dict(arguments if arguments is not None else call.arguments),
        )

    @classmethod
    def failure(
        cls,
        call: ToolCall,
        error: Exception,
        message: str,
        arguments: dict[str, Any] | None = None,
    ) -> ToolResult:
        return cls(
            tool_call_id=call.id,
            tool_name=call.name,
            content=message,
            is_error=True,
            error_type=type(error).__name__,
            arguments=dict(arguments if arguments is not None else call.arguments),
        )

    def to_block(self) -> ToolResultBlock:
        """Render as a conversation tool-result block."""
        return ToolResultBlock(
            tool_use_id=self.tool_call_id,
            content=self.content,
            is_error=self.is_error,
        )


@runtime_checkable
class ToolServer(Protocol):
    """Protocol for a connected tool server transport."""

    async def list_tools(self) -> list[ToolDescriptor]:
        """Return the server's complete tool catalog."""
        ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Invoke a tool by name.

        Returns:
            The tool's content payload flattened to text.

        Raises:
            ToolExecutionError: If the server reports a tool-level error.
        """
        ...

    async def close(self) -> None:
        """Release the transport. Must be safe to call more than once."""
        ...
