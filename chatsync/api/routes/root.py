# chatsync/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the API and its features.
    """
    return {
        "message": "chatsync - real-time chat client",
        "version": "1.0",
        "features": ["snapshot_plus_live_sync", "dedup_by_id", "message_grouping", "room_switching"],
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "current_room": "/rooms/current",
            "messages": "/messages",
            "notifications": "/notifications",
            "health": "/health",
        },
    }
