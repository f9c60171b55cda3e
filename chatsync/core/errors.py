# chatsync/core/errors.py

from __future__ import annotations

from typing import Optional

# ============================================================================
# ERROR TAXONOMY
# ============================================================================


class BackendError(Exception):
    """Raised by a ChatBackend when the underlying store fails."""


class ChatError(Exception):
    """
    Base class for every recoverable failure of a chat session.

    None of these are fatal. A surfaced error is turned into a Notification
    by the session; retries are always user-initiated.

    Attributes:
        title: Short heading for the user-visible notification
        user_message: Text shown to the user
    """

    title = "Error"
    user_message = "Something went wrong"

    def __init__(self, detail: Optional[str] = None, user_message: Optional[str] = None):
        self.detail = detail
        if user_message:
            self.user_message = user_message
        super().__init__(detail or self.user_message)


class FetchError(ChatError):
    """Room list or message list retrieval failed. Existing state is kept."""

    user_message = "Failed to load data"


class SendError(ChatError):
    """Message insert failed. The draft is kept so the user can retry."""

    user_message = "Failed to send message"


class AuthRequiredError(ChatError):
    """Send attempted without a signed-in user or a current room."""

    user_message = "You must be logged in to send messages"


class NotificationResolveError(ChatError):
    """Point lookup after a live insert failed. Never surfaced."""

    user_message = "Failed to resolve live message"


class RoomNotFoundError(ChatError):
    user_message = "Room not found"
