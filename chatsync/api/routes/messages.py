# chatsync/api/routes/messages.py

from typing import List

from fastapi import APIRouter, Depends

from chatsync.core.errors import ChatError
from chatsync.models.models import Message, Notification, SendMessageRequest
from chatsync.services.session import ChatSession
from chatsync.api.routes.utils import build_view, get_session, http_error

router = APIRouter()


@router.get("/messages")
async def get_messages(session: ChatSession = Depends(get_session)):
    """
    Current view of the room.

    Returns:
        dict: {"loading", "room", "messages" (null while loading), "groups", "can_send"}
    """
    return build_view(session)


@router.post("/messages", response_model=Message, status_code=201)
async def send_message(request: SendMessageRequest, session: ChatSession = Depends(get_session)):
    """
    Send a message to the current room as the signed-in user.

    The message shows up in GET /messages once the live insert arrives.

    Raises:
        HTTPException: 401 without a user or a current room, 502 if the
            insert failed
    """
    try:
        return await session.send_message(request.content)
    except ChatError as e:
        raise http_error(e) from e


@router.get("/notifications", response_model=List[Notification])
async def get_notifications(session: ChatSession = Depends(get_session)):
    """Pending user-visible notifications. Reading them clears the queue."""
    return session.drain_notifications()
