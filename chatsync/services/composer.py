# chatsync/services/composer.py
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from chatsync.core.errors import ChatError
from chatsync.models.models import MAX_MESSAGE_LENGTH

logger = logging.getLogger(__name__)

SendCallable = Callable[[str], Awaitable[object]]


class Composer:
    """
    Pending draft of one viewer and the rules for sending it.

    Args:
        on_send: Coroutine function receiving the trimmed content
        max_length: Characters beyond this are not accepted into the draft
        disabled: No-op submits while True (signed out, no current room)
    """

    def __init__(self, on_send: SendCallable, max_length: int = MAX_MESSAGE_LENGTH, disabled: bool = False):
        self.on_send = on_send
        self.max_length = max_length
        self.disabled = disabled
        self.draft = ""

    def set_draft(self, text: str) -> str:
        self.draft = text[: self.max_length]
        return self.draft

    @property
    def can_submit(self) -> bool:
        return bool(self.draft.strip()) and not self.disabled

    async def submit(self) -> Optional[str]:
        """
        Send the trimmed draft and clear it.

        Returns:
            The content that was sent, or None when nothing was sent

        Raises:
            ChatError: The send failed; the draft is left as it was
        """
        if not self.can_submit:
            return None

        content = self.draft.strip()
        try:
            await self.on_send(content)
        except ChatError:
            logger.info("Send failed, keeping draft for retry")
            raise

        self.draft = ""
        return content

    async def handle_key(self, key: str, shift: bool = False) -> Optional[str]:
        # Shift+Enter is a line break, not a send
        if key == "Enter" and not shift:
            return await self.submit()
        return None
