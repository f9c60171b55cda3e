# chatsync/api/routes/health.py

from fastapi import APIRouter

from chatsync.core import state

router = APIRouter()

@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns the session status: current room, subscription state, whether a
    snapshot is loading, how many messages are held and how many viewers are
    connected.
    """
    session = state.session
    if session is None:
        return {"status": "starting"}

    return {
        "status": "healthy",
        "room_id": session.state.current_room_id,
        "subscription": session.subscriptions.state.value,
        "loading": session.loading,
        "messages": len(session.store),
        "viewers": state.connection_manager.connection_count,
    }
