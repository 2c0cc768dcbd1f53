from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

MessageType = Literal["text", "image", "file"]
MessageStatus = Literal["sent", "delivered", "read"]
ConversationSort = Literal["latest", "oldest", "unread"]


class ConversationSchema(BaseModel):
    user_id: int
    email: str
    user_joined: datetime | None = None
    last_message: str | None = None
    last_message_time: datetime | None = None
    last_sender_id: int | None = None
    unread_count: int = 0

    model_config = ConfigDict(from_attributes=True, frozen=True)


class MessageSchema(BaseModel):
    id: int
    sender_id: int
    sender_type: Literal["user", "admin"] = "user"
    recipient_id: int
    content: str
    type: MessageType = "text"
    status: MessageStatus = "sent"
    is_read: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class ConversationListResponseSchema(BaseModel):
    success: bool = True
    conversations: list[ConversationSchema]
    count: int | None = None


class MessageListResponseSchema(BaseModel):
    success: bool = True
    messages: list[MessageSchema]
    count: int | None = None


class SendMessageRequestSchema(BaseModel):
    recipient_id: int
    content: str
    type: MessageType = "text"


class SendMessageResponseSchema(BaseModel):
    success: bool = True
    message_id: int
    timestamp: datetime


class MarkReadRequestSchema(BaseModel):
    user_id: int


class MarkReadResponseSchema(BaseModel):
    success: bool = True
    updated_count: int
