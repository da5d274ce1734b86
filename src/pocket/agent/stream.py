"""Assemble streamed block events into complete content blocks.

Fragments are buffered per block index. A block only becomes a
:class:`TextBlock` or :class:`ToolUseBlock` once its stop event
arrives, so callers never act on a half-received tool request.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pocket.providers.base import (
    BlockDelta,
    BlockStart,
    BlockStop,
    StreamEnd,
    StreamEvent,
    TextBlock,
    TokenUsage,
    ToolUseBlock,
)


@dataclass
class _PendingBlock:
    block_type: str
    tool_id: str = ""
    tool_name: str = ""
    parts: list[str] = field(default_factory=list)

    def complete(self) -> TextBlock | ToolUseBlock:
        body = "".join(self.parts)
        if self.block_type == "tool_use":
            return ToolUseBlock(
                id=self.tool_id, name=self.tool_name, input=_parse_input(body)
            )
        return TextBlock(body)


def _parse_input(raw: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {"raw": raw}
    return value if isinstance(value, dict) else {"raw": raw}


class StreamAssembler:
    """Collects stream events into the ordered blocks of one response."""

    def __init__(self) -> None:
        self._pending: dict[int, _PendingBlock] = {}
        self._complete: dict[int, TextBlock | ToolUseBlock] = {}
        self.stop_reason: str | None = None
        self.usage = TokenUsage()

    @property
    def finished(self) -> bool:
        return self.stop_reason is not None

    def feed(self, event: StreamEvent) -> TextBlock | ToolUseBlock | None:
        """Consume one event.

        Returns:
            The block completed by this event, if any.

        Raises:
            ValueError: On events for unknown or already-closed indices.
        """
        if isinstance(event, BlockStart):
            if event.index in self._pending or event.index in self._complete:
                msg = f"Block {event.index} started twice"
                raise ValueError(msg)
            self._pending[event.index] = _PendingBlock(
                block_type=event.block_type,
                tool_id=event.tool_id,
                tool_name=event.tool_name,
            )
            return None

        if isinstance(event, BlockDelta):
            pending = self._require(event.index)
            pending.parts.append(
                event.partial_json if pending.block_type == "tool_use" else event.text
            )
            return None

        if isinstance(event, BlockStop):
            block = self._require(event.index).complete()
            del self._pending[event.index]
            self._complete[event.index] = block
            return block

        if isinstance(event, StreamEnd):
            self.stop_reason = event.stop_reason
            self.usage = event.usage
            return None

        msg = f"Unknown stream event: {event!r}"
        raise ValueError(msg)

    def _require(self, index: int) -> _PendingBlock:
        pending = self._pending.get(index)
        if pending is None:
            msg = f"No open block at index {index}"
            raise ValueError(msg)
        return pending

    def blocks(self) -> tuple[TextBlock | ToolUseBlock, ...]:
        """Completed blocks in index order. Unfinished blocks are dropped."""
        return tuple(self._complete[i] for i in sorted(self._complete))
