# chatsync/api/routes/utils.py

from __future__ import annotations

import asyncio
import logging

from fastapi import HTTPException

from chatsync.core import state
from chatsync.core.errors import AuthRequiredError, ChatError, RoomNotFoundError
from chatsync.services.session import ChatSession

logger = logging.getLogger(__name__)

# Strong references to in-flight broadcasts until they finish
_broadcast_tasks: set[asyncio.Task] = set()


def get_session() -> ChatSession:
    if state.session is None:
        raise HTTPException(status_code=503, detail="Chat session not started")
    return state.session


def http_error(error: ChatError) -> HTTPException:
    """Map a surfaced chat error onto an HTTP status."""
    if isinstance(error, AuthRequiredError):
        status_code = 401
    elif isinstance(error, RoomNotFoundError):
        status_code = 404
    else:
        status_code = 502
    return HTTPException(status_code=status_code, detail=error.user_message)


def build_view(session: ChatSession) -> dict:
    """
    Everything a renderer needs, as one JSON-ready dict.

    While a snapshot is loading, "messages" is null and "groups" is empty:
    the list is not authoritative yet and must not be rendered.
    """
    room = session.current_room
    loading = session.loading
    return {
        "type": "state",
        "loading": loading,
        "room": room.model_dump(mode="json") if room else None,
        "messages": None if loading else [m.model_dump(mode="json") for m in session.messages],
        "groups": [] if loading else [g.model_dump(mode="json") for g in session.groups],
        "can_send": session.can_send,
    }


async def broadcast_state():
    """
    Push the current view to every connected WebSocket viewer.

    Side Effects:
        Sends {"type": "state", ...} (see build_view) to all viewers
    """
    if state.session is None:
        return
    state.connection_manager.refresh_composers(state.session)
    await state.connection_manager.broadcast(build_view(state.session))


def _broadcast_done(task: asyncio.Task) -> None:
    _broadcast_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"State broadcast failed: {task.exception()!r}")


def schedule_state_broadcast() -> None:
    """Store change listener: recompute and push the view on the running loop."""
    if state.connection_manager.connection_count:
        task = asyncio.create_task(broadcast_state())
        _broadcast_tasks.add(task)
        task.add_done_callback(_broadcast_done)
