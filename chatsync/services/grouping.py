# chatsync/services/grouping.py
from __future__ import annotations

from datetime import timedelta
from typing import Iterable, List

from chatsync.models.models import Message, MessageGroup

# 5 minutes
GROUP_WINDOW_MS = 300_000


def group_messages(messages: Iterable[Message], window_ms: int = GROUP_WINDOW_MS) -> List[MessageGroup]:
    """
    Collapse consecutive messages of one author into display groups.

    A new group starts at the first message, whenever the author changes, or
    when a message comes window_ms or more after the previous one. Single
    left-to-right pass with no state kept between calls, so the same input
    always yields value-equal groups.

    Args:
        messages: Messages ordered by created_at ascending
        window_ms: Largest gap (exclusive) that still continues a group

    Returns:
        List[MessageGroup]: Groups in message order
    """
    groups: List[MessageGroup] = []
    window = timedelta(milliseconds=window_ms)
    previous: Message | None = None

    for message in messages:
        same_author = previous is not None and previous.author_id == message.author_id
        within_window = (
            previous is not None
            and message.created_at - previous.created_at < window
        )

        if same_author and within_window:
            groups[-1].messages.append(message)
        else:
            groups.append(
                MessageGroup(
                    author_id=message.author_id,
                    display_name=message.display_name,
                    messages=[message],
                )
            )
        previous = message

    return groups
