# chatsync/services/backend.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List, Optional

from chatsync.models.models import InsertRecord, Message, Room

InsertHandler = Callable[[InsertRecord], Awaitable[None]]

# ============================================================================
# CAPABILITY CONTRACT
# ============================================================================

class ChatBackend(ABC):
    """
    Persistence and live-notification capability consumed by a chat session.

    Implementations:
        - MemoryChatBackend: in-process, used for local runs and tests
        - AsyncRedisChatBackend: redis.asyncio storage + per-room pub/sub

    Every failure of the underlying store is raised as BackendError.
    Not-found is never an error: fetch_message_by_id returns None.
    """

    @abstractmethod
    async def list_rooms(self) -> List[Room]:
        """All rooms, ordered by created_at ascending."""

    @abstractmethod
    async def fetch_messages(self, room_id: str) -> List[Message]:
        """All messages of a room with author profiles joined, oldest first."""

    @abstractmethod
    async def fetch_message_by_id(self, message_id: str) -> Optional[Message]:
        """Point lookup with the author profile joined."""

    @abstractmethod
    async def insert_message(self, room_id: str, author_id: str, content: str) -> Message:
        """Write a message; id and created_at are assigned here."""

    @abstractmethod
    async def subscribe_to_inserts(self, room_id: str, on_insert: InsertHandler) -> Any:
        """
        Open a subscription on inserts into one room.

        Returns once the subscription is acknowledged. Notifications are
        delivered to on_insert in write order.

        Returns:
            An opaque handle to pass to unsubscribe()
        """

    @abstractmethod
    async def unsubscribe(self, handle: Any) -> None:
        """After this returns, on_insert is never called again for handle."""

    async def close(self) -> None:
        return None
