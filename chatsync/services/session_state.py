# chatsync/services/session_state.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from chatsync.models.models import CurrentUser, Room

UserProvider = Callable[[], Optional[CurrentUser]]


def _signed_out() -> Optional[CurrentUser]:
    return None


@dataclass
class SessionState:
    """
    The one piece of mutable state shared by the components of a session.

    Created by ChatSession and handed to the store and the subscription
    manager through their constructors.
    """

    current_room: Optional[Room] = None
    current_user: UserProvider = _signed_out

    @property
    def current_room_id(self) -> Optional[str]:
        return self.current_room.id if self.current_room else None
