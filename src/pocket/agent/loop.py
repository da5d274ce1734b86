"""Reasoning loop: bounded model/tool exchange for one query.

Each iteration sends the session history, the aggregated tool catalog,
and the context-augmented system prompt to the model. The assistant
turn is appended to history as one message. If it requested tools,
every request is executed and exactly one result per request is
appended (in a single user message) before the next model request.
The loop ends when a turn contains no tool requests, or when the
iteration ceiling is reached.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pocket.agent.machine import LoopState, LoopStateMachine
from pocket.agent.stream import StreamAssembler
from pocket.core.errors import (
    ModelRequestError,
    ModelTimeoutError,
    ToolExecutionError,
)
from pocket.prompts import with_context
from pocket.providers.base import (
    BlockDelta,
    Message,
    ModelResponse,
    TokenUsage,
)
from pocket.tools.base import ToolCall, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pocket.providers.base import ModelProvider, ToolUseBlock
    from pocket.session.manager import SessionState
    from pocket.tools.invoker import ToolInvoker
    from pocket.tools.registry import ProviderRegistry

logger = logging.getLogger(__name__)


# ── Events ───────────────────────────────────────────────────────


class EventKind(enum.Enum):
    """Progress notifications emitted while a query runs."""

    ITERATION_STARTED = "iteration_started"
    TEXT_DELTA = "text_delta"
    TOOL_CALLED = "tool_called"
    TOOL_RESULT = "tool_result"
    TOOL_ERROR = "tool_error"
    COMPLETED = "completed"
    LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True, slots=True)
class LoopEvent:
    """A single progress notification."""

    kind: EventKind
    iteration: int
    text: str = ""
    tool_name: str = ""
    tool_call_id: str = ""
    arguments: dict[str, Any] = field(default_factory=dict)


if TYPE_CHECKING:
    EventCallback = Callable[[LoopEvent], Awaitable[None]]


# ── Result ───────────────────────────────────────────────────────


@dataclass
class LoopResult:
    """Outcome of one query."""

    text: str
    state: LoopState
    iterations: int
    tool_results: list[ToolResult] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    elapsed: float = 0.0

    @property
    def limit_reached(self) -> bool:
        """True when the loop stopped at the iteration ceiling."""
        return self.state == LoopState.ITERATION_LIMIT_REACHED


_INTERRUPTED = "Error: tool call was interrupted before it completed"


class ReasoningLoop:
    """Drives the bounded model/tool exchange for a session."""

    def __init__(
        self,
        provider: ModelProvider,
        registry: ProviderRegistry,
        invoker: ToolInvoker,
        *,
        model_id: str,
        system_prompt: str = "",
        first_turn_model_id: str | None = None,
        max_iterations: int = 5,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        timeout: float = 60.0,
        stream: bool = False,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.invoker = invoker
        self.model_id = model_id
        self.system_prompt = system_prompt
        self.first_turn_model_id = first_turn_model_id
        self.max_iterations = max_iterations
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        self.stream = stream

    async def run(
        self,
        session: SessionState,
        query: str,
        *,
        on_event: EventCallback | None = None,
    ) -> LoopResult:
        """Process one user query against ``session``.

        Raises:
            ModelRequestError: If a model request fails or times out.
                The query is abandoned; history keeps the user message
                and any turns already completed.
        """
        start = time.monotonic()
        machine = LoopStateMachine(self.max_iterations)

        detected = session.context.observe_and_remember(query)
        if detected:
            logger.info("Session %s context updated: %s", session.session_id, detected)
        session.history.append(Message(role="user", content=query))

        text_parts: list[str] = []
        tool_results: list[ToolResult] = []
        usage = TokenUsage()

        async def emit(event: LoopEvent) -> None:
            if on_event is not None:
                await on_event(event)

        while True:
            iteration = machine.iteration + 1
            await emit(LoopEvent(EventKind.ITERATION_STARTED, iteration))
            try:
                response = await self._request(session, iteration, emit)
            except BaseException:
                machine.transition(LoopState.FAILED)
                raise
            machine.transition(LoopState.MODEL_RESPONDED)
            usage = usage + response.usage

            # The assistant turn is recorded atomically, text and tool
            # requests together, so tool results can attach to it.
            if response.content:
                session.history.append(
                    Message(role="assistant", content=tuple(response.content))
                )
            text_parts.extend(b.text for b in response.text_blocks if b.text)

            tool_uses = response.tool_uses
            if not tool_uses:
                machine.transition(LoopState.DONE)
                break

            machine.transition(LoopState.EXECUTING_TOOLS)
            results = await self._execute_tools(session, tool_uses, iteration, emit)
            tool_results.extend(results)

            if machine.has_budget:
                machine.transition(LoopState.AWAITING_MODEL)
                continue

            machine.transition(LoopState.ITERATION_LIMIT_REACHED)
            logger.warning(
                "Session %s reached the iteration limit (%d)",
                session.session_id,
                self.max_iterations,
            )
            break

        result = LoopResult(
            text="\n".join(text_parts),
            state=machine.state,
            iterations=machine.iteration,
            tool_results=tool_results,
            usage=usage,
            elapsed=time.monotonic() - start,
        )
        kind = (
            EventKind.LIMIT_REACHED if result.limit_reached else EventKind.COMPLETED
        )
        await emit(LoopEvent(kind, result.iterations, text=result.text))
        return result

    # ── Model requests ───────────────────────────────────────────

    def _model_for(self, iteration: int) -> str:
        if iteration == 1 and self.first_turn_model_id:
            return self.first_turn_model_id
        return self.model_id

    async def _request(
        self,
        session: SessionState,
        iteration: int,
        emit: EventCallback,
    ) -> ModelResponse:
        model_id = self._model_for(iteration)
        system = with_context(self.system_prompt, session.context)
        tools = [t.to_api() for t in self.registry.all_tools()]
        messages = list(session.history)

        logger.info(
            "Sending request to %s (iteration %d/%d)",
            model_id,
            iteration,
            self.max_iterations,
        )
        try:
            async with asyncio.timeout(self.timeout):
                if self.stream:
                    response = await self._request_streaming(
                        system, messages, model_id, tools, iteration, emit
                    )
                else:
                    response = await self.provider.send(
                        system,
                        messages,
                        model_id,
                        tools=tools or None,
                        max_tokens=self.max_tokens,
                        temperature=self.temperature,
                        timeout=self.timeout,
                    )
        except TimeoutError as e:
            msg = f"Model request timed out after {self.timeout:g}s"
            raise ModelTimeoutError(self.provider.provider_id, msg) from e

        logger.info(
            "Received response from %s (iteration %d, %d tool request(s))",
            model_id,
            iteration,
            len(response.tool_uses),
        )
        return response

    async def _request_streaming(
        self,
        system: str,
        messages: list[Message],
        model_id: str,
        tools: list[dict[str, Any]],
        iteration: int,
        emit: EventCallback,
    ) -> ModelResponse:
        assembler = StreamAssembler()
        events = self.provider.stream(
            system,
            messages,
            model_id,
            tools=tools or None,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=self.timeout,
        )
        async with aclosing(events) as stream:
            async for event in stream:
                try:
                    assembler.feed(event)
                except ValueError as e:
                    msg = f"Malformed response stream: {e}"
                    raise ModelRequestError(self.provider.provider_id, msg) from e
                if isinstance(event, BlockDelta) and event.text:
                    await emit(
                        LoopEvent(EventKind.TEXT_DELTA, iteration, text=event.text)
                    )
        return ModelResponse(
            content=assembler.blocks(),
            model_id=model_id,
            usage=assembler.usage,
            stop_reason=assembler.stop_reason or "end_turn",
        )

    # ── Tool execution ───────────────────────────────────────────

    async def _execute_tools(
        self,
        session: SessionState,
        tool_uses: list[ToolUseBlock],
        iteration: int,
        emit: EventCallback,
    ) -> list[ToolResult]:
        """Run every requested tool and append one result per request.

        Results for the whole turn go into one user message. If the
        turn is interrupted, the requests that did not finish get a
        failure result so history never holds an unanswered request.
        """
        results: list[ToolResult] = []
        try:
            for use in tool_uses:
                call = _to_call(use)
                await emit(
                    LoopEvent(
                        EventKind.TOOL_CALLED,
                        iteration,
                        tool_name=call.name,
                        tool_call_id=call.id,
                        arguments=call.arguments,
                    )
                )
                result = await self.invoker.invoke(call, session.context)
                results.append(result)
                kind = (
                    EventKind.TOOL_ERROR if result.is_error else EventKind.TOOL_RESULT
                )
                await emit(
                    LoopEvent(
                        kind,
                        iteration,
                        text=result.content,
                        tool_name=result.tool_name,
                        tool_call_id=result.tool_call_id,
                        arguments=result.arguments,
                    )
                )
        finally:
            answered = {r.tool_call_id for r in results}
            for use in tool_uses:
                if use.id not in answered:
                    error = ToolExecutionError(use.name, "interrupted")
                    failure = ToolResult.failure(_to_call(use), error, _INTERRUPTED)
                    results.append(failure)
            by_id = {r.tool_call_id: r for r in results}
            session.history.append(
                Message(
                    role="user",
                    content=tuple(by_id[use.id].to_block() for use in tool_uses),
                )
            )
        return results


def _to_call(use: ToolUseBlock) -> ToolCall:
    return ToolCall(id=use.id, name=use.name, arguments=dict(use.input))


def final_text(result: LoopResult) -> str:
    """Answer text for display, falling back when the model said nothing."""
    if result.text:
        return result.text
    if result.limit_reached:
        return "I wasn't able to finish within the allowed number of steps."
    return ""

