"""Reasoning loop: bounded model/tool exchange."""

from pocket.agent.loop import (
    EventKind,
    LoopEvent,
    LoopResult,
    ReasoningLoop,
    final_text,
)
from pocket.agent.machine import LoopState, LoopStateMachine
from pocket.agent.stream import StreamAssembler

__all__ = [
    "EventKind",
    "LoopEvent",
    "LoopResult",
    "LoopState",
    "LoopStateMachine",
    "ReasoningLoop",
    "StreamAssembler",
    "final_text",
]
