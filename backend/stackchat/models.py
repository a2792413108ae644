from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ErrorResponse(BaseModel):
    """Failure variant returned by the service layer instead of raising."""
    error: str


class User(BaseModel):
    """User model for the chat application."""
    id: Optional[str] = None
    username: str
    password: str
    dateJoined: datetime = Field(default_factory=utc_now)
    biography: Optional[str] = None


class SafeUser(BaseModel):
    """User as returned to clients (no password)."""
    id: Optional[str] = None
    username: str
    dateJoined: datetime
    biography: Optional[str] = None


class UserProjection(BaseModel):
    id: Optional[str] = None
    username: str


class Message(BaseModel):
    """A single message document, referenced by exactly one chat."""
    id: Optional[str] = None
    msg: str
    msgFrom: str
    msgDateTime: datetime = Field(default_factory=utc_now)
    type: Literal["direct", "global"] = "direct"


class MessageInChat(Message):
    user: Optional[UserProjection] = None


class Chat(BaseModel):
    """Chat document; messages are stored as message ids."""
    id: Optional[str] = None
    participants: List[str] = []
    messages: List[str] = []
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)


class EnrichedChat(BaseModel):
    """Chat with message ids expanded into full messages and sender projections."""
    id: str
    participants: List[str]
    messages: List[MessageInChat]
    createdAt: datetime
    updatedAt: datetime


class CreateChatPayload(BaseModel):
    participants: List[str]
    messages: List[Message]


class ChatUpdate(BaseModel):
    type: Literal["created", "newMessage"]
    chat: EnrichedChat


class UserUpdate(BaseModel):
    type: Literal["created", "updated", "deleted"]
    user: SafeUser
