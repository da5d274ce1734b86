"""Reasoning loop state machine: states, transitions, guards.

Pure logic module. No IO. The loop driver performs model requests and
tool calls; this module only validates that it moves between states
in the legal order and counts iterations against the ceiling.
"""

from __future__ import annotations

import enum


class LoopState(enum.Enum):
    """States of one query's reasoning loop."""

    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED = "model_responded"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"
    FAILED = "failed"


# FAILED can be reached from any non-terminal state (handled separately).
_VALID_TRANSITIONS: dict[LoopState, frozenset[LoopState]] = {
    LoopState.AWAITING_MODEL: frozenset({LoopState.MODEL_RESPONDED}),
    LoopState.MODEL_RESPONDED: frozenset(
        {LoopState.DONE, LoopState.EXECUTING_TOOLS}
    ),
    LoopState.EXECUTING_TOOLS: frozenset(
        {LoopState.AWAITING_MODEL, LoopState.ITERATION_LIMIT_REACHED}
    ),
    LoopState.DONE: frozenset(),
    LoopState.ITERATION_LIMIT_REACHED: frozenset(),
    LoopState.FAILED: frozenset(),
}

TERMINAL_STATES: frozenset[LoopState] = frozenset(
    {LoopState.DONE, LoopState.ITERATION_LIMIT_REACHED, LoopState.FAILED}
)


class InvalidTransitionError(RuntimeError):
    """The loop driver attempted an illegal state transition."""


class LoopStateMachine:
    """Tracks the state and iteration count of one reasoning loop.

    ``iteration`` counts model requests issued so far. Leaving
    EXECUTING_TOOLS for AWAITING_MODEL is only allowed while another
    request fits under ``max_iterations``; otherwise the only way out
    is ITERATION_LIMIT_REACHED.
    """

    def __init__(self, max_iterations: int = 5) -> None:
        if max_iterations < 1:
            msg = f"max_iterations must be >= 1, got {max_iterations}"
            raise ValueError(msg)
        self.max_iterations = max_iterations
        self.state = LoopState.AWAITING_MODEL
        self.iteration = 0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def has_budget(self) -> bool:
        """Whether another model request fits under the ceiling."""
        return self.iteration < self.max_iterations

    def can_transition(self, to: LoopState) -> bool:
        """Check if a transition is valid without raising."""
        if self.is_terminal:
            return False
        if to == LoopState.FAILED:
            return True
        if to not in _VALID_TRANSITIONS[self.state]:
            return False
        if self.state == LoopState.EXECUTING_TOOLS:
            if to == LoopState.AWAITING_MODEL:
                return self.has_budget
            return not self.has_budget
        return True

    def transition(self, to: LoopState) -> None:
        """Move to ``to``, counting a new iteration on each model response.

        Raises:
            InvalidTransitionError: If the move is not legal from the
                current state.
        """
        if not self.can_transition(to):
            msg = (
                f"Invalid transition {self.state.value} -> {to.value} "
                f"(iteration {self.iteration}/{self.max_iterations})"
            )
            raise InvalidTransitionError(msg)
        if to == LoopState.MODEL_RESPONDED:
            self.iteration += 1
        self.state = to
