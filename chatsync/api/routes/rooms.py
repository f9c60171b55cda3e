# chatsync/api/routes/rooms.py

from typing import List, Optional

from fastapi import APIRouter, Depends

from chatsync.core.errors import ChatError
from chatsync.models.models import Room, SelectRoomRequest
from chatsync.services.session import ChatSession
from chatsync.api.routes.utils import get_session, http_error

router = APIRouter()

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@router.get("/rooms", response_model=List[Room])
async def list_rooms(session: ChatSession = Depends(get_session)):
    """
    List the rooms of the directory, oldest first.

    Returns:
        List[Room]: Rooms from the last successful directory load
    """
    return session.rooms


@router.get("/rooms/current", response_model=Optional[Room])
async def get_current_room(session: ChatSession = Depends(get_session)):
    """Room the session is viewing, or null for an empty directory."""
    return session.current_room


@router.put("/rooms/current", response_model=Room)
async def set_current_room(request: SelectRoomRequest, session: ChatSession = Depends(get_session)):
    """
    Switch the current room.

    Tears down the live subscription of the previous room, subscribes to the
    new one and loads its snapshot. A failed snapshot still switches the room;
    the failure is reported through /notifications.

    Raises:
        HTTPException: 404 if the room does not exist, 502 if the room list
            could not be reloaded
    """
    try:
        return await session.set_current_room(request.room_id)
    except ChatError as e:
        raise http_error(e) from e
