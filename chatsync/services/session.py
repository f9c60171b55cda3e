# chatsync/services/session.py
"""Chat session: the synchronization engine as seen by the rendering layer.

A session owns the Room Directory, the Message Store and the Live
Subscription Manager of one client, wires them to a shared SessionState and
exposes what a UI needs: the current room, the ordered message list (or a
loading flag), the derived groups, notifications, and the two entry points
send_message() and set_current_room().
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Optional

from chatsync.core.errors import (
    AuthRequiredError,
    BackendError,
    ChatError,
    FetchError,
    RoomNotFoundError,
    SendError,
)
from chatsync.models.models import (
    MAX_MESSAGE_LENGTH,
    CurrentUser,
    Message,
    MessageGroup,
    Notification,
    Room,
)
from chatsync.services.backend import ChatBackend
from chatsync.services.grouping import GROUP_WINDOW_MS, group_messages
from chatsync.services.message_store import ChangeListener, MessageStore
from chatsync.services.room_directory import RoomDirectory
from chatsync.services.session_state import SessionState, UserProvider
from chatsync.services.subscription_manager import LiveSubscriptionManager

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50


class ChatSession:
    def __init__(
        self,
        backend: ChatBackend,
        current_user: Optional[UserProvider] = None,
        group_window_ms: int = GROUP_WINDOW_MS,
    ) -> None:
        self.backend = backend
        self.state = SessionState()
        if current_user is not None:
            self.state.current_user = current_user
        self.group_window_ms = group_window_ms

        self.directory = RoomDirectory(backend)
        self.store = MessageStore(backend, self.state)
        self.subscriptions = LiveSubscriptionManager(backend, self.store)
        self.notifications: Deque[Notification] = deque(maxlen=MAX_NOTIFICATIONS)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def rooms(self) -> List[Room]:
        return list(self.directory.rooms)

    @property
    def current_room(self) -> Optional[Room]:
        return self.state.current_room

    @property
    def current_user(self) -> Optional[CurrentUser]:
        return self.state.current_user()

    @property
    def loading(self) -> bool:
        return self.store.loading

    @property
    def messages(self) -> List[Message]:
        return self.store.messages

    @property
    def groups(self) -> List[MessageGroup]:
        return group_messages(self.store.messages, self.group_window_ms)

    @property
    def can_send(self) -> bool:
        return self.current_user is not None and self.current_room is not None

    def add_listener(self, listener: ChangeListener) -> None:
        self.store.add_listener(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        self.store.remove_listener(listener)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def notify(self, error: ChatError) -> Notification:
        notification = Notification(title=error.title, description=error.user_message)
        self.notifications.append(notification)
        logger.warning(f"{error.title}: {error.user_message} ({error})")
        return notification

    def drain_notifications(self) -> List[Notification]:
        pending = list(self.notifications)
        self.notifications.clear()
        return pending

    # ------------------------------------------------------------------
    # Room switching
    # ------------------------------------------------------------------
    async def start(self, requested_room_id: Optional[str] = None) -> Optional[Room]:
        """
        Pick the initial room and make it current.

        A failed room list is surfaced as a notification and leaves the
        session as it was; an empty directory leaves it without a room.
        """
        try:
            room = await self.directory.select_room(requested_room_id)
        except FetchError as e:
            self.notify(e)
            return self.current_room

        if room is None:
            return None

        await self._switch_to(room)
        return room

    async def set_current_room(self, room_id: str) -> Room:
        """
        Make room_id the current room.

        Raises:
            RoomNotFoundError: No such room, even after reloading the directory
            FetchError: The directory had to be reloaded and that failed
        """
        room = self.directory.get_room(room_id)
        if room is None:
            try:
                await self.directory.load_rooms()
            except FetchError as e:
                self.notify(e)
                raise
            room = self.directory.get_room(room_id)

        if room is None:
            error = RoomNotFoundError(room_id)
            self.notify(error)
            raise error

        await self._switch_to(room)
        return room

    async def _switch_to(self, room: Room) -> None:
        logger.info(f"→ Switching to room '{room.name}' ({room.id})")

        # Marked current first: a snapshot still in flight for the previous
        # room sees the mismatch and discards its result
        self.state.current_room = room
        self.store.reset(room.id)

        try:
            await self.subscriptions.attach(room.id)
        except BackendError as e:
            # No live updates until the next switch; the snapshot still loads
            self.notify(FetchError(str(e), user_message="Failed to subscribe to live updates"))
        if self.state.current_room_id != room.id:
            return

        try:
            await self.store.load_snapshot(room.id)
        except FetchError as e:
            self.notify(e)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    async def send_message(self, content: str) -> Message:
        """
        Insert a message into the current room as the current user.

        The new message reaches the list through the live subscription, like
        everybody else's.

        Raises:
            AuthRequiredError: No signed-in user or no current room
            SendError: Invalid content or the insert failed
        """
        user = self.current_user
        room = self.current_room
        if user is None or room is None:
            error = AuthRequiredError()
            self.notify(error)
            raise error

        content = content.strip()
        if not content or len(content) > MAX_MESSAGE_LENGTH:
            error = SendError(f"Message must be 1-{MAX_MESSAGE_LENGTH} characters")
            self.notify(error)
            raise error

        try:
            message = await self.backend.insert_message(room.id, user.id, content)
        except BackendError as e:
            error = SendError(str(e))
            self.notify(error)
            raise error from e

        logger.info(f"📨 Sent message {message.id} to room {room.id}")
        return message

    async def close(self) -> None:
        await self.subscriptions.detach()
