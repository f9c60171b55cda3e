# chatsync/models/models.py
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

MAX_MESSAGE_LENGTH = 1000
UNKNOWN_USER = "Unknown User"


class AuthorProfile(BaseModel):
    # Snapshot taken when the message was loaded; never re-resolved
    username: str
    avatar_url: Optional[str] = None


class Room(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime


class Message(BaseModel):
    id: str
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    created_at: datetime
    author_id: str
    room_id: str
    author_profile: Optional[AuthorProfile] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value

    @property
    def display_name(self) -> str:
        if self.author_profile and self.author_profile.username:
            return self.author_profile.username
        return UNKNOWN_USER


class MessageGroup(BaseModel):
    author_id: str
    display_name: str
    messages: List[Message]


class InsertRecord(BaseModel):
    """Minimal payload of a live insert notification."""
    id: str
    room_id: str


class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None


class Notification(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "destructive"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SendMessageRequest(BaseModel):
    # Length is checked after trimming, by ChatSession.send_message
    content: str


class SelectRoomRequest(BaseModel):
    room_id: str
