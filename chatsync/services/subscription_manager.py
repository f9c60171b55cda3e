# chatsync/services/subscription_manager.py

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from chatsync.core.errors import BackendError, NotificationResolveError
from chatsync.models.models import InsertRecord
from chatsync.services.backend import ChatBackend
from chatsync.services.message_store import MessageStore

logger = logging.getLogger(__name__)


class SubscriptionState(str, Enum):
    DETACHED = "detached"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    TORN_DOWN = "torn_down"


# ============================================================================
# LIVE SUBSCRIPTION MANAGER
# ============================================================================

class LiveSubscriptionManager:
    """
    Owns the single insert subscription of a session.

    State machine:
        DETACHED -> SUBSCRIBING    attach(room_id)
        SUBSCRIBING -> ACTIVE      backend acknowledged the subscription
        ACTIVE -> TORN_DOWN        detach(), or attach() for another room

    Every notification carries only the new message's id; the manager looks
    up the full record (author profile joined) and forwards it to
    MessageStore.apply_incoming(). A failed lookup drops the notification.

    Exclusivity:
        The old subscription is unsubscribed, and the unsubscribe awaited,
        before a new one is opened. Each attach() also bumps a generation
        counter that every callback is bound to; callbacks from an older
        generation are dropped, and a subscription opened by an attach()
        that has since been superseded is closed right away. Notifications
        of a room the session has left can never reach the store.
    """

    def __init__(self, backend: ChatBackend, store: MessageStore) -> None:
        self.backend = backend
        self.store = store
        self.state = SubscriptionState.DETACHED
        self.room_id: Optional[str] = None
        self._handle: Any = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def attach(self, room_id: str) -> None:
        """
        Subscribe to inserts of room_id, tearing down any previous subscription.
        """
        self._generation += 1
        generation = self._generation

        await self._teardown()
        if generation != self._generation:
            return  # superseded while unsubscribing

        self.state = SubscriptionState.SUBSCRIBING
        self.room_id = room_id

        async def on_insert(record: InsertRecord) -> None:
            await self._on_insert(generation, room_id, record)

        try:
            handle = await self.backend.subscribe_to_inserts(room_id, on_insert)
        except BackendError as e:
            if generation != self._generation:
                logger.info("Superseded subscribe to room %s failed: %s", room_id, e)
                return
            self.state = SubscriptionState.DETACHED
            raise

        if generation != self._generation:
            logger.info("Subscription to room %s superseded, closing it", room_id)
            await self._unsubscribe(handle)
            return

        self._handle = handle
        self.state = SubscriptionState.ACTIVE
        logger.info("✓ Live subscription active for room %s", room_id)

    async def detach(self) -> None:
        self._generation += 1
        await self._teardown()
        if self.state != SubscriptionState.DETACHED:
            self.state = SubscriptionState.TORN_DOWN
        self.room_id = None

    async def _teardown(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        self.state = SubscriptionState.TORN_DOWN
        await self._unsubscribe(handle)
        logger.info("✗ Live subscription torn down for room %s", self.room_id)

    async def _unsubscribe(self, handle: Any) -> None:
        try:
            await self.backend.unsubscribe(handle)
        except BackendError as e:
            # Callbacks are fenced by generation, nothing more can reach the store
            logger.warning(f"Unsubscribe failed: {e}")

    def _is_live(self, generation: int, room_id: str) -> bool:
        return (
            generation == self._generation
            and self.state == SubscriptionState.ACTIVE
            and self.room_id == room_id
        )

    async def _on_insert(self, generation: int, room_id: str, record: InsertRecord) -> None:
        if not self._is_live(generation, room_id) or record.room_id != room_id:
            logger.debug("Dropping stale notification %s for room %s", record.id, record.room_id)
            return

        try:
            message = await self._resolve(record)
        except NotificationResolveError as e:
            logger.warning(f"Dropped live notification {record.id}: {e}")
            return

        # The lookup is a suspension point: the room may have changed meanwhile
        if not self._is_live(generation, room_id):
            logger.debug("Dropping notification %s resolved after room switch", record.id)
            return

        self.store.apply_incoming(message)

    async def _resolve(self, record: InsertRecord):
        try:
            message = await self.backend.fetch_message_by_id(record.id)
        except BackendError as e:
            raise NotificationResolveError(str(e)) from e
        if message is None:
            raise NotificationResolveError("message not found")
        return message
