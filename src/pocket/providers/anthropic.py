"""Anthropic (Claude) provider adapter."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import TYPE_CHECKING, Any

import anthropic

from pocket.core.errors import (
    ModelAuthError,
    ModelNotFoundError,
    ModelOverloadedError,
    ModelRateLimitError,
    ModelRequestError,
    ModelTimeoutError,
)
from pocket.providers.base import (
    BlockDelta,
    BlockStart,
    BlockStop,
    ModelResponse,
    StreamEnd,
    TextBlock,
    TokenUsage,
    ToolUseBlock,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from pocket.providers.base import Message, StreamEvent

logger = logging.getLogger(__name__)

PROVIDER_ID = "anthropic"


def _map_error(e: anthropic.APIError) -> ModelRequestError:
    """Map Anthropic SDK errors to the pocket error hierarchy."""
    if isinstance(e, anthropic.AuthenticationError):
        return ModelAuthError(PROVIDER_ID, "Authentication failed")
    if isinstance(e, anthropic.RateLimitError):
        retry_after = None
        if hasattr(e, "response") and e.response is not None:
            raw = e.response.headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ModelRateLimitError(PROVIDER_ID, retry_after=retry_after)
    if isinstance(e, anthropic.APITimeoutError):
        return ModelTimeoutError(PROVIDER_ID, "Request timed out")
    if isinstance(e, anthropic.InternalServerError):
        return ModelOverloadedError(PROVIDER_ID, "Service unavailable")
    if isinstance(e, anthropic.NotFoundError):
        return ModelNotFoundError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.BadRequestError):
        return ModelRequestError(PROVIDER_ID, "Request rejected by the model API")
    # Fallback for unknown API errors
    return ModelOverloadedError(PROVIDER_ID, str(e))


def _usage(raw: Any) -> TokenUsage:
    if raw is None:
        return TokenUsage()
    return TokenUsage(
        input_tokens=getattr(raw, "input_tokens", 0) or 0,
        output_tokens=getattr(raw, "output_tokens", 0) or 0,
    )


def _parse_content(content: Any) -> tuple[TextBlock | ToolUseBlock, ...]:
    """Convert SDK content blocks into pocket blocks, preserving order."""
    blocks: list[TextBlock | ToolUseBlock] = []
    for block in content:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            blocks.append(TextBlock(block.text))
        elif block_type == "tool_use":
            blocks.append(
                ToolUseBlock(
                    id=block.id, name=block.name, input=dict(block.input or {})
                )
            )
    return tuple(blocks)


class AnthropicProvider:
    """Provider adapter for Anthropic's Claude models.

    The SDK's built-in retries are disabled: a failed model request is
    reported to the caller, who decides whether to try again.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self._client = client or anthropic.AsyncAnthropic(
            api_key=api_key, max_retries=0
        )

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    def _build_kwargs(
        self,
        system: str,
        messages: Sequence[Message],
        model_id: str,
        tools: list[dict[str, Any]] | None,
        max_tokens: int,
        temperature: float,
        timeout: float | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model_id,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system or anthropic.NOT_GIVEN,
            "messages": [m.to_api() for m in messages],
        }
        if tools:
            kwargs["tools"] = tools
        if timeout is not None:
            kwargs["timeout"] = timeout
        return kwargs

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
        kwargs = self._build_kwargs(
            system, messages, model_id, tools, max_tokens, temperature, timeout
        )

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise _map_error(e) from e

        latency_ms = (time.monotonic() - start) * 1000
        logger.debug(
            "Model %s responded in %.0fms (stop=%s)",
            model_id,
            latency_ms,
            response.stop_reason,
        )

        return ModelResponse(
            content=_parse_content(response.content),
            model_id=model_id,
            usage=_usage(response.usage),
            stop_reason=response.stop_reason or "end_turn",
            latency_ms=latency_ms,
            raw_response=response,
        )

    async def stream(
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
        kwargs = self._build_kwargs(
            system, messages, model_id, tools, max_tokens, temperature, timeout
        )

        # Indices of forwarded blocks. Other block types (thinking, server
        # tools) are skipped, as in send().
        started: set[int] = set()
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    event_type = getattr(event, "type", None)
                    if event_type == "content_block_start":
                        block = event.content_block
                        if block.type == "tool_use":
                            started.add(event.index)
                            yield BlockStart(
                                index=event.index,
                                block_type="tool_use",
                                tool_id=block.id,
                                tool_name=block.name,
                            )
                        elif block.type == "text":
                            started.add(event.index)
                            yield BlockStart(index=event.index, block_type="text")
                    elif event_type == "content_block_delta":
                        if event.index not in started:
                            continue
                        delta = event.delta
                        if delta.type == "text_delta":
                            yield BlockDelta(index=event.index, text=delta.text)
                        elif delta.type == "input_json_delta":
                            yield BlockDelta(
                                index=event.index, partial_json=delta.partial_json
                            )
                    elif event_type == "content_block_stop":
                        if event.index in started:
                            yield BlockStop(index=event.index)

                final = await stream.get_final_message()
                yield StreamEnd(
                    stop_reason=final.stop_reason or "end_turn",
                    usage=_usage(final.usage),
                )

        except anthropic.APIError as e:
            raise _map_error(e) from e
