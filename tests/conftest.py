"""Shared test fixtures and helpers for the chatsync tests."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import pytest

from chatsync.models.models import AuthorProfile, CurrentUser, Message, Room
from chatsync.services.memory_backend import MemoryChatBackend

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: every call returns the current time, then ticks."""

    def __init__(self, start: datetime = T0, tick: timedelta = timedelta(seconds=1)):
        self.now = start
        self.tick = tick

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.tick
        return current


class GatedBackend(MemoryChatBackend):
    """MemoryChatBackend whose fetches and subscribes can be held open.

    gate_fetch(room_id) makes the next fetch_messages(room_id) block until
    release_fetch(room_id); fetch_entered[room_id] is set once it is blocked.
    The same pattern applies to subscribe_to_inserts.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.fetch_gates: Dict[str, asyncio.Event] = {}
        self.fetch_entered: Dict[str, asyncio.Event] = {}
        self.subscribe_gates: Dict[str, asyncio.Event] = {}
        self.subscribe_entered: Dict[str, asyncio.Event] = {}
        self.unsubscribed = []

    def gate_fetch(self, room_id: str) -> None:
        self.fetch_gates[room_id] = asyncio.Event()
        self.fetch_entered[room_id] = asyncio.Event()

    def release_fetch(self, room_id: str) -> None:
        self.fetch_gates.pop(room_id).set()

    def gate_subscribe(self, room_id: str) -> None:
        self.subscribe_gates[room_id] = asyncio.Event()
        self.subscribe_entered[room_id] = asyncio.Event()

    def release_subscribe(self, room_id: str) -> None:
        self.subscribe_gates.pop(room_id).set()

    async def fetch_messages(self, room_id):
        # Read before blocking, like a real query started before later writes
        messages = await super().fetch_messages(room_id)
        gate = self.fetch_gates.get(room_id)
        if gate is not None:
            self.fetch_entered[room_id].set()
            await gate.wait()
        return messages

    async def subscribe_to_inserts(self, room_id, on_insert):
        gate = self.subscribe_gates.get(room_id)
        if gate is not None:
            self.subscribe_entered[room_id].set()
            await gate.wait()
        return await super().subscribe_to_inserts(room_id, on_insert)

    async def unsubscribe(self, handle):
        self.unsubscribed.append(handle.room_id)
        await super().unsubscribe(handle)


def make_room(room_id: str = "room-1", name: Optional[str] = None, offset: int = 0) -> Room:
    return Room(id=room_id, name=name or room_id, created_at=T0 + timedelta(seconds=offset))


def make_message(
    message_id: str,
    author_id: str = "alice",
    seconds: float = 0,
    room_id: str = "room-1",
    content: Optional[str] = None,
    username: Optional[str] = None,
) -> Message:
    return Message(
        id=message_id,
        content=content or f"message {message_id}",
        created_at=T0 + timedelta(seconds=seconds),
        author_id=author_id,
        room_id=room_id,
        author_profile=AuthorProfile(username=username or author_id),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    """GatedBackend with "General" (oldest) and "Welcome" rooms and two profiles."""
    backend = GatedBackend(clock=clock)
    backend.create_default_rooms()
    backend.set_profile("user-1", "alice")
    backend.set_profile("user-2", "bob")
    return backend


@pytest.fixture
def user():
    return CurrentUser(id="user-1", email="alice@example.com")
