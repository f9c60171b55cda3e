# chatsync/services/redis_backend.py
from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from chatsync.core.config import settings
from chatsync.core.errors import BackendError
from chatsync.models.models import AuthorProfile, InsertRecord, Message, Room
from chatsync.services.backend import ChatBackend, InsertHandler

logger = logging.getLogger(__name__)

# Key layout
ROOMS_KEY = "chat:rooms"                                # zset room_id -> created_at ms
ROOM_KEY = "chat:room:{room_id}"                        # Room JSON
ROOM_MESSAGES_KEY = "chat:room:{room_id}:messages"      # zset message_id -> created_at ms
MESSAGE_KEY = "chat:message:{message_id}"               # Message JSON, no profile
PROFILE_KEY = "chat:profile:{user_id}"                  # AuthorProfile JSON
INSERT_CHANNEL = "chat:room:{room_id}:inserts"          # pub/sub, InsertRecord JSON

SUBSCRIBE_ACK_TIMEOUT = 5.0


def _score(ts: datetime) -> float:
    return ts.timestamp() * 1000


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except (RedisError, ValidationError) as exc:
        logger.error(f"Redis {operation} failed: {exc}")
        raise BackendError(f"{operation} failed") from exc


def _log_listener_exit(room_id: str, task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Redis listener for room {room_id} stopped: {exc!r}")


@dataclass
class RedisSubscription:
    room_id: str
    pubsub: Any
    task: asyncio.Task


class AsyncRedisChatBackend(ChatBackend):
    """
    Chat storage and live inserts on top of redis.asyncio.

    Every room has its own pub/sub channel. A subscription owns a dedicated
    PubSub object and a listener task, so tearing one down never affects
    another.
    """

    def __init__(self, url: Optional[str] = None, client: Any = None):
        self.url = url or settings.redis_url
        self.client = client

    async def connect(self):
        """Establish async connection to Redis."""
        self.client = redis.from_url(self.url, decode_responses=True)
        await self.client.ping()
        logger.info(f"✓ Connected to Redis at {settings.REDIS_HOST}:{settings.REDIS_PORT}")

    async def close(self):
        if self.client:
            await self.client.aclose()
        logger.info("Redis connection closed")

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------
    async def create_room(self, name: str, description: Optional[str] = None) -> Room:
        room = Room(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            created_at=datetime.now(timezone.utc),
        )
        with _translate_errors("create_room"):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(ROOM_KEY.format(room_id=room.id), room.model_dump_json())
                pipe.zadd(ROOMS_KEY, {room.id: _score(room.created_at)})
                await pipe.execute()
        logger.info(f"✓ Created room: {room.name}")
        return room

    async def set_profile(self, user_id: str, username: str, avatar_url: Optional[str] = None) -> AuthorProfile:
        profile = AuthorProfile(username=username, avatar_url=avatar_url)
        with _translate_errors("set_profile"):
            await self.client.set(PROFILE_KEY.format(user_id=user_id), profile.model_dump_json())
        return profile

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def _profiles(self, user_ids: Iterable[str]) -> Dict[str, AuthorProfile]:
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return {}
        raws = await self.client.mget([PROFILE_KEY.format(user_id=uid) for uid in user_ids])
        return {
            uid: AuthorProfile.model_validate_json(raw)
            for uid, raw in zip(user_ids, raws)
            if raw
        }

    async def list_rooms(self) -> List[Room]:
        with _translate_errors("list_rooms"):
            room_ids = await self.client.zrange(ROOMS_KEY, 0, -1)
            if not room_ids:
                return []
            raws = await self.client.mget([ROOM_KEY.format(room_id=rid) for rid in room_ids])
            return [Room.model_validate_json(raw) for raw in raws if raw]

    async def fetch_messages(self, room_id: str) -> List[Message]:
        with _translate_errors("fetch_messages"):
            message_ids = await self.client.zrange(ROOM_MESSAGES_KEY.format(room_id=room_id), 0, -1)
            if not message_ids:
                return []
            raws = await self.client.mget([MESSAGE_KEY.format(message_id=mid) for mid in message_ids])
            messages = [Message.model_validate_json(raw) for raw in raws if raw]
            profiles = await self._profiles(m.author_id for m in messages)

        return [
            m.model_copy(update={"author_profile": profiles.get(m.author_id)})
            for m in messages
        ]

    async def fetch_message_by_id(self, message_id: str) -> Optional[Message]:
        with _translate_errors("fetch_message_by_id"):
            raw = await self.client.get(MESSAGE_KEY.format(message_id=message_id))
            if raw is None:
                return None
            message = Message.model_validate_json(raw)
            profiles = await self._profiles([message.author_id])

        return message.model_copy(update={"author_profile": profiles.get(message.author_id)})

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def insert_message(self, room_id: str, author_id: str, content: str) -> Message:
        """
        Store a message and announce it on the room's insert channel.

        The message JSON and the per-room index are written in one
        transaction; the insert record is published afterwards so a
        subscriber's point lookup always finds the message.
        """
        with _translate_errors("insert_message"):
            message = Message(
                id=str(uuid.uuid4()),
                content=content,
                created_at=datetime.now(timezone.utc),
                author_id=author_id,
                room_id=room_id,
            )
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(MESSAGE_KEY.format(message_id=message.id), message.model_dump_json())
                pipe.zadd(ROOM_MESSAGES_KEY.format(room_id=room_id), {message.id: _score(message.created_at)})
                await pipe.execute()

            record = InsertRecord(id=message.id, room_id=room_id)
            await self.client.publish(INSERT_CHANNEL.format(room_id=room_id), record.model_dump_json())
            logger.info(f"📤 Published insert {message.id} to room {room_id}")

            profiles = await self._profiles([author_id])

        return message.model_copy(update={"author_profile": profiles.get(author_id)})

    # ------------------------------------------------------------------
    # Live inserts
    # ------------------------------------------------------------------
    async def subscribe_to_inserts(self, room_id: str, on_insert: InsertHandler) -> RedisSubscription:
        channel = INSERT_CHANNEL.format(room_id=room_id)
        with _translate_errors("subscribe"):
            pubsub = self.client.pubsub()
            await pubsub.subscribe(channel)
            ack = await pubsub.get_message(timeout=SUBSCRIBE_ACK_TIMEOUT)

        if not ack or ack.get("type") != "subscribe":
            logger.warning(f"No subscribe acknowledgement on '{channel}' (got {ack!r})")
        logger.info(f"✓ Subscribed to Redis channel '{channel}'")

        task = asyncio.create_task(self._listen(pubsub, room_id, on_insert))
        task.add_done_callback(partial(_log_listener_exit, room_id))
        return RedisSubscription(room_id=room_id, pubsub=pubsub, task=task)

    async def _listen(self, pubsub: Any, room_id: str, on_insert: InsertHandler):
        async for message in pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                record = InsertRecord.model_validate_json(message["data"])
            except ValidationError as e:
                logger.error(f"Malformed insert record on room {room_id}: {e}")
                continue

            logger.debug(f"➡ Redis: insert {record.id} for room {room_id}")
            try:
                await on_insert(record)
            except Exception as e:
                logger.error(f"Error processing insert {record.id} for room {room_id}: {e}")

    async def unsubscribe(self, handle: RedisSubscription) -> None:
        handle.task.cancel()
        try:
            await handle.task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Listener for room {handle.room_id} had already failed: {e}")

        with _translate_errors("unsubscribe"):
            await handle.pubsub.unsubscribe()
            await handle.pubsub.aclose()
        logger.info(f"✗ Unsubscribed from room {handle.room_id}")
