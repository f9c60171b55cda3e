# chatsync/api/websocket.py

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chatsync.core import state
from chatsync.core.errors import ChatError
from chatsync.api.routes.utils import build_view

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for renderers of the chat session.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Select Room:
        {"action": "select_room", "room_id": "uuid-123"}
        Response: state push for the new room

    Update Draft:
        {"action": "draft", "text": "Hello wor"}
        Response: {"type": "draft", "text": "...", "can_submit": true}
        (text beyond 1000 characters is cut off)

    Key Press:
        {"action": "key", "key": "Enter", "shift": false}
        Enter without shift submits the draft, anything else is ignored

    Submit Draft:
        {"action": "submit"}
        Response: {"type": "draft", "text": "", "can_submit": false, "sent": "Hello"}

    Send Directly:
        {"action": "send", "content": "Hello"}
        Response: {"type": "message_sent", "message": {...}}

    Server -> Client Messages:
    -------------------------
    State (on connect and after every change of the message list):
        {"type": "state", "loading": false, "room": {...}, "messages": [...],
         "groups": [...], "can_send": true}

    Error:
        {"type": "error", "message": "..."}
    """
    session = state.session
    if session is None:
        await websocket.close(code=1013)
        return

    composer = await state.connection_manager.connect(websocket, session)
    await websocket.send_json(build_view(session))

    async def send_draft(sent=None):
        payload = {"type": "draft", "text": composer.draft, "can_submit": composer.can_submit}
        if sent is not None:
            payload["sent"] = sent
        await websocket.send_json(payload)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
                action = message.get("action")
                logger.debug(f"Websocket input: Action: {action}")

                if action == "select_room":
                    room_id = message.get("room_id")
                    if room_id:
                        # The store notifies viewers on reset and on snapshot commit
                        await session.set_current_room(room_id)

                elif action == "draft":
                    composer.set_draft(message.get("text", ""))
                    await send_draft()

                elif action == "key":
                    sent = await composer.handle_key(message.get("key", ""), bool(message.get("shift")))
                    if sent is not None:
                        await send_draft(sent)

                elif action == "submit":
                    sent = await composer.submit()
                    await send_draft(sent)

                elif action == "send":
                    sent_message = await session.send_message(message.get("content", ""))
                    await websocket.send_json(
                        {"type": "message_sent", "message": sent_message.model_dump(mode="json")}
                    )

                else:
                    await websocket.send_json(
                        {
                            "type": "error",
                            "message": f"Unknown action: {action}",
                        }
                    )

            except json.JSONDecodeError:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": "Invalid JSON",
                    }
                )
            except ChatError as e:
                await websocket.send_json(
                    {
                        "type": "error",
                        "message": e.user_message,
                    }
                )

    except WebSocketDisconnect:
        state.connection_manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        state.connection_manager.disconnect(websocket)
