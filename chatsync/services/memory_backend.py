# chatsync/services/memory_backend.py

from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from chatsync.core.errors import BackendError
from chatsync.models.models import AuthorProfile, InsertRecord, Message, Room
from chatsync.services.backend import ChatBackend, InsertHandler

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MemorySubscription:
    id: int
    room_id: str
    on_insert: InsertHandler
    active: bool = True


# ============================================================================
# IN-PROCESS BACKEND
# ============================================================================
class MemoryChatBackend(ChatBackend):
    """
    Keeps rooms, messages and profiles in process memory.

    Used for local runs (CHAT_BACKEND=memory) and as the collaborator in
    tests. Nothing survives a restart.

    Attributes:
        rooms: Dictionary mapping room_id -> Room
        messages: Dictionary mapping message_id -> Message (without profile)
        room_messages: Dictionary mapping room_id -> message ids in write order
        profiles: Dictionary mapping user_id -> AuthorProfile
        subscriptions: Dictionary mapping subscription id -> MemorySubscription

    Live delivery is direct dispatch: insert_message() awaits every active
    subscriber of the room, in subscription order, before returning.

    Usage:
        backend = MemoryChatBackend()
        backend.create_default_rooms()
        room = backend.create_room("Product Team", "Product discussions")
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or _utcnow
        self.rooms: Dict[str, Room] = {}
        self.messages: Dict[str, Message] = {}
        self.room_messages: Dict[str, List[str]] = {}
        self.profiles: Dict[str, AuthorProfile] = {}
        self.subscriptions: Dict[int, MemorySubscription] = {}
        self._subscription_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------
    def create_default_rooms(self) -> List[Room]:
        """
        Create "General" and "Welcome" so users have somewhere to start
        chatting immediately.
        """
        defaults = [
            {"name": "General", "description": "General discussion"},
            {"name": "Welcome", "description": "Welcome new users!"},
        ]
        created = [self.create_room(rd["name"], rd["description"]) for rd in defaults]
        logger.info(f"✓ Created {len(defaults)} default rooms")
        return created

    def create_room(self, name: str, description: Optional[str] = None) -> Room:
        room = Room(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            created_at=self.clock(),
        )
        self.rooms[room.id] = room
        self.room_messages[room.id] = []
        return room

    def set_profile(self, user_id: str, username: str, avatar_url: Optional[str] = None) -> AuthorProfile:
        profile = AuthorProfile(username=username, avatar_url=avatar_url)
        self.profiles[user_id] = profile
        return profile

    # ------------------------------------------------------------------
    # ChatBackend
    # ------------------------------------------------------------------
    def _with_profile(self, message: Message) -> Message:
        profile = self.profiles.get(message.author_id)
        return message.model_copy(update={"author_profile": profile})

    async def list_rooms(self) -> List[Room]:
        return sorted(self.rooms.values(), key=lambda room: room.created_at)

    async def fetch_messages(self, room_id: str) -> List[Message]:
        ids = self.room_messages.get(room_id, [])
        messages = [self._with_profile(self.messages[mid]) for mid in ids]
        return sorted(messages, key=lambda m: m.created_at)

    async def fetch_message_by_id(self, message_id: str) -> Optional[Message]:
        message = self.messages.get(message_id)
        if message is None:
            return None
        return self._with_profile(message)

    async def insert_message(self, room_id: str, author_id: str, content: str) -> Message:
        if room_id not in self.rooms:
            raise BackendError(f"Unknown room: {room_id}")
        try:
            message = Message(
                id=str(uuid.uuid4()),
                content=content,
                created_at=self.clock(),
                author_id=author_id,
                room_id=room_id,
            )
        except ValidationError as exc:
            raise BackendError(f"Rejected message: {exc}") from exc

        self.messages[message.id] = message
        self.room_messages[room_id].append(message.id)

        record = InsertRecord(id=message.id, room_id=room_id)
        for subscription in list(self.subscriptions.values()):
            if subscription.active and subscription.room_id == room_id:
                await subscription.on_insert(record)

        return self._with_profile(message)

    async def subscribe_to_inserts(self, room_id: str, on_insert: InsertHandler) -> MemorySubscription:
        subscription = MemorySubscription(
            id=next(self._subscription_ids),
            room_id=room_id,
            on_insert=on_insert,
        )
        self.subscriptions[subscription.id] = subscription
        logger.debug("Memory subscription %s opened for room %s", subscription.id, room_id)
        return subscription

    async def unsubscribe(self, handle: MemorySubscription) -> None:
        handle.active = False
        self.subscriptions.pop(handle.id, None)
        logger.debug("Memory subscription %s closed", handle.id)
