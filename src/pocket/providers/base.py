"""Provider adapter interface and data classes.

All LLM adapters implement the ``ModelProvider`` protocol. Conversation
content is modelled as typed blocks so an assistant turn (text plus tool
requests) and the matching tool results can be recorded exactly as the
model API expects them. Data classes are immutable (frozen with slots).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

Role = Literal["user", "assistant"]


# ── Content blocks ────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TextBlock:
    """Plain text produced by the model or the user."""

    text: str

    def to_api(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True, slots=True)
class ToolUseBlock:
    """A tool invocation request issued by the model."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    def to_api(self) -> dict[str, Any]:
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": dict(self.input),
        }


@dataclass(frozen=True, slots=True)
class ToolResultBlock:
    """The outcome of a tool invocation, correlated by ``tool_use_id``."""

    tool_use_id: str
    content: str
    is_error: bool = False

    def to_api(self) -> dict[str, Any]:
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            block["is_error"] = True
        return block


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock


@dataclass(frozen=True, slots=True)
class Message:
    """A single conversation turn."""

    role: Role
    content: str | tuple[ContentBlock, ...]

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        """Content as blocks (plain strings become one text block)."""
        if isinstance(self.content, str):
            return (TextBlock(self.content),)
        return self.content

    def text(self) -> str:
        """Join the text blocks of this message."""
        return "\n".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.blocks if isinstance(b, ToolResultBlock)]

    def to_api(self) -> dict[str, Any]:
        """Render in the Messages API wire form."""
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [b.to_api() for b in self.content]}


# ── Responses ─────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts from a single model call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass(slots=True)
class ModelResponse:
    """Complete response from a model call."""

    content: tuple[TextBlock | ToolUseBlock, ...]
    model_id: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    stop_reason: str = "end_turn"  # "end_turn", "tool_use", "max_tokens"
    latency_ms: float = 0.0
    raw_response: object = field(default=None, repr=False)

    @property
    def text_blocks(self) -> list[TextBlock]:
        return [b for b in self.content if isinstance(b, TextBlock)]

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]


# ── Streaming events ──────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class BlockStart:
    """A content block at ``index`` has started."""

    index: int
    block_type: Literal["text", "tool_use"]
    tool_id: str = ""
    tool_name: str = ""


@dataclass(frozen=True, slots=True)
class BlockDelta:
    """An incremental fragment of the block at ``index``.

    Text blocks carry ``text``; tool-use blocks carry ``partial_json``.
    """

    index: int
    text: str = ""
    partial_json: str = ""


@dataclass(frozen=True, slots=True)
class BlockStop:
    """The block at ``index`` is complete."""

    index: int


@dataclass(frozen=True, slots=True)
class StreamEnd:
    """The response is complete."""

    stop_reason: str = "end_turn"
    usage: TokenUsage = field(default_factory=TokenUsage)


StreamEvent = BlockStart | BlockDelta | BlockStop | StreamEnd


@runtime_checkable
class ModelProvider(Protocol):
    """Protocol that all LLM adapters must satisfy.

    Implementations are stateless: they hold connection config but no
    conversation state. Sessions own the history.
    """

    @property
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""
        ...

    async def send(
        self,
        system: str,
        messages: Sequence[Message],
        model_id: str,
        *,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float | None = None,
    ) -> ModelResponse:
        """Send the conversation and wait for a complete response.

        Raises ModelRequestError on failure.
        """
        ...

    def stream(
        self,
        system: str,
        messages: Sequence[Message],
        model_id: str,
        *,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Send the conversation and yield indexed block events.

        The last event is a :class:`StreamEnd`.
        Raises ModelRequestError on failure.
        """
        ...
