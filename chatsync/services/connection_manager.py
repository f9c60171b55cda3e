# chatsync/services/connection_manager.py

from __future__ import annotations

from typing import Dict, Optional
from fastapi import WebSocket
import logging

from chatsync.services.composer import Composer
from chatsync.services.session import ChatSession

logger = logging.getLogger(__name__)

# ============================================================================
# WEBSOCKET VIEWER MANAGER
# ============================================================================

class ConnectionManager:
    """
    Tracks the WebSocket viewers of the chat session.

    Each viewer renders the same session state and owns its own Composer,
    so two open tabs never share a draft.

    Data Structures:
        composers: Maps WebSocket -> Composer holding that viewer's draft
    """

    def __init__(self) -> None:
        self.composers: Dict[WebSocket, Composer] = {}

    @property
    def connection_count(self) -> int:
        return len(self.composers)

    async def connect(self, websocket: WebSocket, session: ChatSession) -> Composer:
        """
        Accept a new WebSocket viewer and give it an empty draft.

        Args:
            websocket: The WebSocket connection object
            session: Session whose send_message() the composer submits to
        """
        await websocket.accept()

        composer = Composer(on_send=session.send_message, disabled=not session.can_send)
        self.composers[websocket] = composer

        logger.info("✓ Viewer connected. Total: %d", len(self.composers))
        return composer

    def disconnect(self, websocket: WebSocket) -> None:
        if self.composers.pop(websocket, None) is not None:
            logger.info("✗ Viewer disconnected. Total: %d", len(self.composers))

    def get_composer(self, websocket: WebSocket) -> Optional[Composer]:
        return self.composers.get(websocket)

    def refresh_composers(self, session: ChatSession) -> None:
        """Re-evaluate every composer's disabled flag after a state change."""
        disabled = not session.can_send
        for composer in self.composers.values():
            composer.disabled = disabled

    async def broadcast(self, payload: dict) -> None:
        """
        Send a payload to every viewer.

        Error Handling:
            If a send fails, the connection is marked as disconnected
            and cleaned up.
        """
        disconnected = set()
        for connection in list(self.composers):
            try:
                await connection.send_json(payload)
            except Exception as e:
                logger.error(f"Send error: {e}")
                disconnected.add(connection)

        for conn in disconnected:
            self.disconnect(conn)
