# chatsync/services/message_store.py
"""Ordered, duplicate-free message list of the current room.

The list is filled once per room by a snapshot fetch and afterwards only grows
through live inserts. Two paths can deliver the same message (a snapshot that
started before the message existed, plus its live notification), so every
message is de-duplicated by id.

Invariant: messages are unique by id and sorted by created_at ascending, ties
kept in arrival order.
"""
from __future__ import annotations

import bisect
import logging
from typing import Callable, List, Optional, Set

from chatsync.core.errors import BackendError, FetchError
from chatsync.models.models import Message
from chatsync.services.backend import ChatBackend
from chatsync.services.session_state import SessionState

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class MessageStore:
    """Holds the message list for the session's current room.

    Attributes:
        room_id: Room the held list belongs to.
        loading: True while a snapshot fetch is in flight. The list must not be
            rendered as authoritative in this state.
    """

    def __init__(self, backend: ChatBackend, session_state: SessionState) -> None:
        self.backend = backend
        self.session_state = session_state
        self.room_id: Optional[str] = None
        self.loading = False
        self._messages: List[Message] = []
        self._ids: Set[str] = set()
        # Live arrivals held back while a snapshot is in flight
        self._pending: List[Message] = []
        # Bumped on every reset and snapshot load; only the newest load commits
        self._load_token = 0
        self._listeners: List[ChangeListener] = []

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self, room_id: Optional[str]) -> None:
        """A room became current: start over with an empty list."""
        self.room_id = room_id
        self._messages = []
        self._ids = set()
        self._pending = []
        self._load_token += 1
        self.loading = room_id is not None
        self._notify()

    def _is_current(self, room_id: str, token: int) -> bool:
        return (
            token == self._load_token
            and self.room_id == room_id
            and self.session_state.current_room_id == room_id
        )

    async def load_snapshot(self, room_id: str) -> List[Message]:
        """Fetch every message of the room and replace the list wholesale.

        The result is only committed if no reset or newer load happened while
        the fetch was in flight and ``room_id`` is still the current room. A
        late result is discarded and an empty list is returned, which also
        covers leaving a room and coming back before its first fetch returns.

        Raises:
            FetchError: The fetch failed for the current room. The held list
                is left as it was.
        """
        if self.room_id != room_id:
            self.reset(room_id)
        self._load_token += 1
        token = self._load_token
        self.loading = True

        try:
            snapshot = await self.backend.fetch_messages(room_id)
        except BackendError as e:
            if not self._is_current(room_id, token):
                logger.info("Ignoring failed snapshot of stale room %s: %s", room_id, e)
                return []
            logger.error("Error fetching messages for room %s: %s", room_id, e)
            self._finish_loading()
            raise FetchError(str(e), user_message="Failed to load messages") from e

        if not self._is_current(room_id, token):
            logger.info(
                "Discarding stale snapshot for room %s (%d messages)", room_id, len(snapshot)
            )
            return []

        self._messages = []
        self._ids = set()
        for message in sorted(snapshot, key=lambda m: m.created_at):
            if message.id not in self._ids:
                self._messages.append(message)
                self._ids.add(message.id)

        self._finish_loading()
        logger.info("✓ Snapshot committed for room %s: %d messages", room_id, len(self._messages))
        return self.messages

    def _finish_loading(self) -> None:
        self.loading = False
        pending, self._pending = self._pending, []
        for message in pending:
            if message.id not in self._ids:
                self._insert(message)
        self._notify()

    # ------------------------------------------------------------------
    # Live inserts
    # ------------------------------------------------------------------
    def apply_incoming(self, message: Message) -> bool:
        """Append a fully resolved live message unless its id is already known.

        Returns:
            True if the message was accepted (appended, or held until the
            in-flight snapshot commits), False if it was a duplicate or
            belongs to another room.
        """
        if message.room_id != self.room_id:
            logger.debug("Ignoring message %s for room %s", message.id, message.room_id)
            return False

        if message.id in self._ids or any(p.id == message.id for p in self._pending):
            logger.debug("Duplicate message %s ignored", message.id)
            return False

        if self.loading:
            self._pending.append(message)
            return True

        self._insert(message)
        self._notify()
        return True

    def _insert(self, message: Message) -> None:
        if not self._messages or message.created_at >= self._messages[-1].created_at:
            self._messages.append(message)
        else:
            # Out-of-order delivery: keep the list sorted
            logger.warning(
                "Message %s arrived out of order (%s < %s), re-sorting",
                message.id, message.created_at, self._messages[-1].created_at,
            )
            index = bisect.bisect_right(self._messages, message.created_at, key=lambda m: m.created_at)
            self._messages.insert(index, message)
        self._ids.add(message.id)
