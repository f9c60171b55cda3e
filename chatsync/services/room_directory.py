# chatsync/services/room_directory.py
from __future__ import annotations

import logging
from typing import List, Optional

from chatsync.core.errors import BackendError, FetchError
from chatsync.models.models import Room
from chatsync.services.backend import ChatBackend

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM DIRECTORY
# ============================================================================
class RoomDirectory:
    """
    Lists the available rooms and resolves which one becomes current.

    Attributes:
        rooms: Rooms from the last successful load, oldest first

    Usage:
        directory = RoomDirectory(backend)
        room = await directory.select_room(requested_id)
    """

    def __init__(self, backend: ChatBackend):
        self.backend = backend
        self.rooms: List[Room] = []

    async def load_rooms(self) -> List[Room]:
        """
        Reload the room list.

        Raises:
            FetchError: The list could not be retrieved. The previously
                loaded rooms are kept as they were.
        """
        try:
            rooms = await self.backend.list_rooms()
        except BackendError as e:
            logger.error(f"Error fetching chat rooms: {e}")
            raise FetchError(str(e), user_message="Failed to load chat rooms") from e

        self.rooms = sorted(rooms, key=lambda room: room.created_at)
        logger.info(f"✓ Loaded {len(self.rooms)} rooms")
        return self.rooms

    async def select_room(self, requested_id: Optional[str] = None) -> Optional[Room]:
        """
        Load the rooms and pick the one that should become current.

        Args:
            requested_id: Room asked for by the caller, if any

        Returns:
            The requested room when it exists, otherwise the earliest-created
            room, or None for an empty directory.
        """
        rooms = await self.load_rooms()
        if not rooms:
            logger.info("Room directory is empty")
            return None

        if requested_id:
            room = self.get_room(requested_id)
            if room:
                return room
            logger.warning(f"Requested room {requested_id} not found, falling back to '{rooms[0].name}'")

        return rooms[0]

    def get_room(self, room_id: str) -> Optional[Room]:
        for room in self.rooms:
            if room.id == room_id:
                return room
        return None
