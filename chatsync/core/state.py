# chatsync/core/state.py
from __future__ import annotations

from typing import Optional

from chatsync.services.backend import ChatBackend
from chatsync.services.connection_manager import ConnectionManager
from chatsync.services.session import ChatSession

# Global singletons for app state, filled in by the app lifespan
backend: Optional[ChatBackend] = None
session: Optional[ChatSession] = None
connection_manager = ConnectionManager()
