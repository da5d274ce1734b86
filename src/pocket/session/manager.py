"""Session manager: isolated history and context per session id.

All per-session state lives here. The CLI uses a single session; the
gateway creates one per websocket connection and removes it when the
connection closes so the table does not grow without bound.

Concurrent queries for the same session are serialized: each session
holds an :class:`asyncio.Lock` and a second query waits for the first
to finish. Different sessions run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pocket.session.context import ContextStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from pocket.agent.loop import EventCallback, LoopResult, ReasoningLoop
    from pocket.providers.base import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Exchange:
    """One user query and the answer shown for it."""

    query: str
    response: str


@dataclass
class SessionState:
    """Everything one session owns."""

    session_id: str
    context: ContextStore
    history: list[Message] = field(default_factory=list)
    exchanges: list[Exchange] = field(default_factory=list)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def clear_history(self) -> None:
        self.history.clear()
        self.exchanges.clear()


class SessionManager:
    """Owns the mapping from session id to :class:`SessionState`."""

    def __init__(
        self,
        context_factory: Callable[[], ContextStore] | None = None,
    ) -> None:
        self._context_factory = context_factory or ContextStore
        self._sessions: dict[str, SessionState] = {}

    def get_or_create(self, session_id: str) -> SessionState:
        """Return the session, creating an empty one on first use."""
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(
                session_id=session_id, context=self._context_factory()
            )
            self._sessions[session_id] = session
            logger.debug("Created session %s", session_id)
        return session

    def remove(self, session_id: str) -> None:
        """Drop a session entirely. Unknown ids are ignored."""
        if self._sessions.pop(session_id, None) is not None:
            logger.debug("Removed session %s", session_id)

    def history(self, session_id: str) -> list[Message]:
        """Copy of the session's message history (empty if unknown)."""
        session = self._sessions.get(session_id)
        return list(session.history) if session else []

    def exchanges(self, session_id: str) -> list[Exchange]:
        """Copy of the session's query/response pairs (empty if unknown)."""
        session = self._sessions.get(session_id)
        return list(session.exchanges) if session else []

    def clear(self, session_id: str) -> None:
        """Reset history for a session. Its context facts are kept."""
        session = self._sessions.get(session_id)
        if session is not None:
            session.clear_history()

    async def query(
        self,
        session_id: str,
        text: str,
        loop: ReasoningLoop,
        on_event: EventCallback | None = None,
    ) -> LoopResult:
        """Run one query for a session, serialized with its other queries.

        Raises:
            ModelRequestError: Propagated from the loop.
        """
        session = self.get_or_create(session_id)
        async with session.lock:
            result = await loop.run(session, text, on_event=on_event)
            session.exchanges.append(Exchange(query=text, response=result.text))
            return result

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
