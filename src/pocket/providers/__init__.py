"""LLM provider adapters."""

from pocket.providers.base import (
    BlockDelta,
    BlockStart,
    BlockStop,
    ContentBlock,
    Message,
    ModelProvider,
    ModelResponse,
    StreamEnd,
    StreamEvent,
    TextBlock,
    TokenUsage,
    ToolResultBlock,
    ToolUseBlock,
)

__all__ = [
    "BlockDelta",
    "BlockStart",
    "BlockStop",
    "ContentBlock",
    "Message",
    "ModelProvider",
    "ModelResponse",
    "StreamEnd",
    "StreamEvent",
    "TextBlock",
    "TokenUsage",
    "ToolResultBlock",
    "ToolUseBlock",
]
