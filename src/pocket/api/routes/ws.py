"""WebSocket /ws -- chat sessions over a websocket.

Each connection gets its own session (history and wallet context),
removed when the connection closes.
"""

from __future__ import annotations

import contextlib
import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pocket.agent.loop import EventKind, final_text
from pocket.core.errors import PocketError

if TYPE_CHECKING:
    from pocket.agent.loop import LoopEvent, ReasoningLoop
    from pocket.session.manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws")
async def ws_chat(websocket: WebSocket) -> None:
    """Run a chat session over a websocket.

    Client sends::

        {"type": "query", "query": "What's my SOL balance?"}
        {"type": "get_history"}
        {"type": "clear_history"}
        {"type": "clear_wallet"}

    Server sends::

        {"type": "connected", "session_id": "...", "tools": ["..."]}
        {"type": "processing", "query": "..."}
        {"type": "thinking", "iteration": 1}
        {"type": "text_delta", "text": "..."}
        {"type": "tool_call", "tool": "...", "id": "...", "arguments": {...}}
        {"type": "tool_result", "tool": "...", "id": "...", "content": "..."}
        {"type": "tool_error", "tool": "...", "id": "...", "error": "..."}
        {"type": "max_iterations_reached", "iterations": 5}
        {"type": "response", "response": "...", "iterations": 2,
         "elapsed": 1.8, "wallet": "..."}
        {"type": "history", "history": [{"query": "...", "response": "..."}]}
        {"type": "history_cleared"}
        {"type": "wallet_cleared"}
        {"type": "error", "message": "..."}
    """
    await websocket.accept()

    sessions: SessionManager = websocket.app.state.sessions
    loop: ReasoningLoop = websocket.app.state.loop
    session_id = str(uuid.uuid4())
    sessions.get_or_create(session_id)
    logger.info("WebSocket session %s opened", session_id)

    try:
        await websocket.send_json(
            {
                "type": "connected",
                "session_id": session_id,
                "tools": websocket.app.state.registry.tool_names(),
            }
        )
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(websocket, "Invalid JSON")
                continue
            if not isinstance(data, dict):
                await _send_error(websocket, "Message must be a JSON object")
                continue
            await _handle_message(websocket, sessions, loop, session_id, data)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket error in session %s", session_id)
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await _send_error(websocket, "Internal error")
            await websocket.close(code=1011)
    finally:
        sessions.remove(session_id)
        logger.info("WebSocket session %s closed", session_id)


async def _send_error(ws: WebSocket, message: str) -> None:
    await ws.send_json({"type": "error", "message": message})


async def _handle_message(
    ws: WebSocket,
    sessions: SessionManager,
    loop: ReasoningLoop,
    session_id: str,
    data: dict[str, Any],
) -> None:
    """Dispatch one client message."""
    msg_type = data.get("type")

    if msg_type == "query":
        query = str(data.get("query") or "").strip()
        if not query:
            await _send_error(ws, "Missing query")
            return
        await _run_query(ws, sessions, loop, session_id, query)
    elif msg_type == "get_history":
        history = [
            {"query": ex.query, "response": ex.response}
            for ex in sessions.exchanges(session_id)
        ]
        await ws.send_json({"type": "history", "history": history})
    elif msg_type == "clear_history":
        sessions.clear(session_id)
        await ws.send_json({"type": "history_cleared"})
    elif msg_type == "clear_wallet":
        sessions.get_or_create(session_id).context.forget()
        await ws.send_json({"type": "wallet_cleared"})
    else:
        await _send_error(ws, f"Unknown message type: {msg_type}")


async def _run_query(
    ws: WebSocket,
    sessions: SessionManager,
    loop: ReasoningLoop,
    session_id: str,
    query: str,
) -> None:
    """Run a query and stream its progress as websocket events."""
    await ws.send_json({"type": "processing", "query": query})

    async def on_event(event: LoopEvent) -> None:
        if event.kind == EventKind.ITERATION_STARTED:
            await ws.send_json({"type": "thinking", "iteration": event.iteration})
        elif event.kind == EventKind.TEXT_DELTA:
            await ws.send_json({"type": "text_delta", "text": event.text})
        elif event.kind == EventKind.TOOL_CALLED:
            await ws.send_json(
                {
                    "type": "tool_call",
                    "tool": event.tool_name,
                    "id": event.tool_call_id,
                    "arguments": event.arguments,
                }
            )
        elif event.kind == EventKind.TOOL_RESULT:
            await ws.send_json(
                {
                    "type": "tool_result",
                    "tool": event.tool_name,
                    "id": event.tool_call_id,
                    "content": event.text,
                }
            )
        elif event.kind == EventKind.TOOL_ERROR:
            await ws.send_json(
                {
                    "type": "tool_error",
                    "tool": event.tool_name,
                    "id": event.tool_call_id,
                    "error": event.text,
                }
            )

    try:
        result = await sessions.query(session_id, query, loop, on_event)
    except PocketError as e:
        logger.warning("Query failed for session %s: %s", session_id, e)
        await _send_error(ws, str(e))
        return

    if result.limit_reached:
        await ws.send_json(
            {"type": "max_iterations_reached", "iterations": result.iterations}
        )
    session = sessions.get_or_create(session_id)
    await ws.send_json(
        {
            "type": "response",
            "response": final_text(result),
            "iterations": result.iterations,
            "elapsed": round(result.elapsed, 3),
            "wallet": session.context.address,
        }
    )
