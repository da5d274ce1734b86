"""Tool servers: connections, registry, invocation."""

from pocket.tools.base import ToolCall, ToolDescriptor, ToolResult, ToolServer
from pocket.tools.invoker import ToolInvoker
from pocket.tools.registry import ProviderRegistry

__all__ = [
    "ProviderRegistry",
    "ToolCall",
    "ToolDescriptor",
    "ToolInvoker",
    "ToolResult",
    "ToolServer",
]
