# chatsync/main.py

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatsync.core import state
from chatsync.core.config import settings
from chatsync.core.logging import setup_logging
from chatsync.models.models import CurrentUser
from chatsync.services.backend import ChatBackend
from chatsync.services.memory_backend import MemoryChatBackend
from chatsync.services.redis_backend import AsyncRedisChatBackend
from chatsync.services.session import ChatSession
from chatsync.api.routes import root, health, rooms, messages
from chatsync.api.routes.utils import schedule_state_broadcast
from chatsync.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = logging.getLogger(__name__)

DEFAULT_ROOMS = [
    ("General", "General discussion"),
    ("Welcome", "Welcome new users!"),
]


def current_user_from_settings() -> Optional[CurrentUser]:
    """The signed-in user, or None when CHAT_USER_ID is unset."""
    if not settings.CHAT_USER_ID:
        return None
    return CurrentUser(id=settings.CHAT_USER_ID, email=settings.CHAT_USER_EMAIL or None)


async def build_backend() -> ChatBackend:
    if settings.CHAT_BACKEND == "memory":
        backend = MemoryChatBackend()
        backend.create_default_rooms()
        if settings.CHAT_USER_ID and settings.CHAT_USERNAME:
            backend.set_profile(settings.CHAT_USER_ID, settings.CHAT_USERNAME)
        return backend

    backend = AsyncRedisChatBackend()
    await backend.connect()
    # First run - create default rooms
    if not await backend.list_rooms():
        for name, description in DEFAULT_ROOMS:
            await backend.create_room(name, description)
    if settings.CHAT_USER_ID and settings.CHAT_USERNAME:
        await backend.set_profile(settings.CHAT_USER_ID, settings.CHAT_USERNAME)
    return backend


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Application starting - backend={settings.CHAT_BACKEND}")

    state.backend = await build_backend()
    state.session = ChatSession(
        state.backend,
        current_user=current_user_from_settings,
        group_window_ms=settings.GROUP_WINDOW_MS,
    )
    state.session.add_listener(schedule_state_broadcast)
    await state.session.start(settings.DEFAULT_ROOM_ID or None)

    try:
        yield
    finally:
        await state.session.close()
        await state.backend.close()
        state.session = None
        state.backend = None
        logger.info("Application stopped")


# FastAPI app
app = FastAPI(title="chatsync", lifespan=lifespan)

# CORS (relaxed for now – tighten in prod)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(rooms.router)
app.include_router(messages.router)

# WebSocket routes
app.include_router(websocket_module.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chatsync.main:app", host="0.0.0.0", port=8000)
