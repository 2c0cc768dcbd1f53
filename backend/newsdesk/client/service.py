from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

from pydantic import ValidationError

from newsdesk.client.transport import (
    CONVERSATIONS_PATH,
    MARK_READ_PATH,
    MESSAGES_PATH,
    SEND_PATH,
    MessageTransport,
    TransportError,
)
from newsdesk.schemas.messages import (
    ConversationListResponseSchema,
    ConversationSchema,
    MessageListResponseSchema,
    MessageSchema,
    MessageStatus,
    MessageType,
    SendMessageResponseSchema,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

NewMessageCallback = Callable[[MessageSchema], None]
StatusUpdateCallback = Callable[[int, MessageStatus], None]


# ── Result envelope ───────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class ApiResponse(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None


@dataclasses.dataclass(frozen=True)
class ConversationList:
    conversations: list[ConversationSchema]
    count: int | None = None


@dataclasses.dataclass(frozen=True)
class MessageList:
    messages: list[MessageSchema]
    count: int | None = None


@dataclasses.dataclass(frozen=True)
class SendReceipt:
    message_id: int
    timestamp: datetime


# ── Event seam ────────────────────────────────────────────────────────────────


class EventRegistry(Generic[T]):
    """Subscriber list whose ``register`` returns the matching unregister callable."""

    def __init__(self) -> None:
        self._callbacks: list[T] = []

    def register(self, callback: T) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unregister() -> None:
            self._callbacks = [cb for cb in self._callbacks if cb is not callback]

        return unregister

    def emit(self, *args: Any) -> None:
        for callback in list(self._callbacks):
            callback(*args)

    def __len__(self) -> int:
        return len(self._callbacks)


# ── Service ───────────────────────────────────────────────────────────────────


class MessageService:
    """Domain operations over a ``MessageTransport``.

    Every operation returns an ``ApiResponse``; transport and application
    failures are folded into ``success=False`` with a readable ``error``.

    ``on_new_message`` / ``on_message_status_update`` are the hook points for
    a push transport. No such transport exists yet, so nothing emits on them,
    and poll results never pass through them.
    """

    def __init__(self, transport: MessageTransport) -> None:
        self._transport = transport
        self.new_message_events: EventRegistry[NewMessageCallback] = EventRegistry()
        self.status_events: EventRegistry[StatusUpdateCallback] = EventRegistry()

    # ── Events ────────────────────────────────────────────────────────────

    def on_new_message(self, callback: NewMessageCallback) -> Callable[[], None]:
        return self.new_message_events.register(callback)

    def on_message_status_update(self, callback: StatusUpdateCallback) -> Callable[[], None]:
        return self.status_events.register(callback)

    # ── Public API ────────────────────────────────────────────────────────

    async def get_conversations(self, sort: str = "latest") -> ApiResponse[ConversationList]:
        try:
            body = await self._transport.get(CONVERSATIONS_PATH, params={"sort": sort})
            parsed = ConversationListResponseSchema.model_validate(body)
            data = ConversationList(conversations=parsed.conversations, count=parsed.count)
        except (TransportError, ValidationError) as exc:
            return self._failure(exc, "Failed to get conversations")
        return ApiResponse(success=True, data=data)

    async def get_messages(
        self,
        counterpart_id: int,
        cursor: int | None = None,
    ) -> ApiResponse[MessageList]:
        """Fetch the whole history with ``counterpart_id``.

        ``cursor`` is reserved for paged history; anything but None is
        reported as a failed response.
        """
        if cursor is not None:
            return ApiResponse(success=False, error="Paged message history is not supported")
        try:
            body = await self._transport.get(MESSAGES_PATH, params={"user_id": counterpart_id})
            parsed = MessageListResponseSchema.model_validate(body)
            data = MessageList(messages=parsed.messages, count=parsed.count)
        except (TransportError, ValidationError) as exc:
            return self._failure(exc, "Failed to get messages")
        return ApiResponse(success=True, data=data)

    async def send_message(
        self,
        counterpart_id: int,
        content: str,
        type: MessageType = "text",
    ) -> ApiResponse[SendReceipt]:
        """Persist an outbound message. Local state is left to the caller."""
        try:
            body = await self._transport.post(
                SEND_PATH,
                json={"recipient_id": counterpart_id, "content": content, "type": type},
            )
            receipt = SendMessageResponseSchema.model_validate(body)
            data = SendReceipt(message_id=receipt.message_id, timestamp=receipt.timestamp)
        except (TransportError, ValidationError) as exc:
            return self._failure(exc, "Failed to send message")
        return ApiResponse(success=True, data=data)

    async def mark_messages_as_read(self, counterpart_id: int) -> ApiResponse[None]:
        try:
            await self._transport.post(MARK_READ_PATH, json={"user_id": counterpart_id})
        except TransportError as exc:
            return self._failure(exc, "Failed to mark messages as read")
        return ApiResponse(success=True)

    async def close(self) -> None:
        await self._transport.aclose()

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _failure(exc: Exception, fallback: str) -> ApiResponse:
        message = exc.message if isinstance(exc, TransportError) else ""
        logger.debug("%s: %s", fallback, exc)
        return ApiResponse(success=False, error=message or fallback)
