from __future__ import annotations

import logging
from typing import Callable

from newsdesk.client.service import MessageService
from newsdesk.client.state import (
    AddMessage,
    MessageStore,
    SetActiveConversation,
    SetConversations,
    SetError,
    SetLoadingConversations,
    SetLoadingMessages,
    SetMessages,
    UpdateMessageStatus,
)
from newsdesk.schemas.messages import ConversationSchema, MessageSchema, MessageType

logger = logging.getLogger(__name__)


class MessageSendError(Exception):
    """Raised when the server refuses or fails to store an outbound message."""


class MessageReadError(Exception):
    """Raised when a read acknowledgement does not reach the server."""


class MessageContext:
    """Runs service calls and feeds their results into the store.

    Loads never raise: failures land in ``state.error``. Sends and read
    acknowledgements raise so the calling view can show inline feedback.
    """

    def __init__(self, service: MessageService, store: MessageStore, self_id: int) -> None:
        self.service = service
        self.store = store
        self.self_id = self_id

    @property
    def state(self):
        return self.store.state

    async def load_conversations(self, sort: str = "latest") -> None:
        self.store.dispatch(SetLoadingConversations(True))
        response = await self.service.get_conversations(sort)
        if response.success and response.data is not None:
            self.store.dispatch(SetConversations(response.data.conversations))
            return
        self.store.dispatch(SetError(response.error or "Failed to load conversations"))
        self.store.dispatch(SetLoadingConversations(False))

    async def load_messages(self, user_id: int) -> None:
        self.store.dispatch(SetLoadingMessages(user_id, True))
        response = await self.service.get_messages(user_id)
        if response.success and response.data is not None:
            self.store.dispatch(SetMessages(user_id, response.data.messages))
            return
        self.store.dispatch(SetError(response.error or "Failed to load messages"))
        self.store.dispatch(SetLoadingMessages(user_id, False))

    async def send_message(
        self,
        recipient_id: int,
        content: str,
        type: MessageType = "text",
    ) -> MessageSchema:
        """Send and echo the message locally; raises MessageSendError on failure."""
        response = await self.service.send_message(recipient_id, content, type)
        if not response.success or response.data is None:
            error = response.error or "Failed to send message"
            self.store.dispatch(SetError(error))
            raise MessageSendError(error)

        message = MessageSchema(
            id=response.data.message_id,
            sender_id=self.self_id,
            recipient_id=recipient_id,
            content=content,
            type=type,
            status="sent",
            is_read=0,
            created_at=response.data.timestamp,
        )
        self.store.dispatch(AddMessage(recipient_id, message))
        return message

    async def mark_messages_as_read(self, user_id: int) -> None:
        response = await self.service.mark_messages_as_read(user_id)
        if not response.success:
            error = response.error or "Failed to mark messages as read"
            self.store.dispatch(SetError(error))
            raise MessageReadError(error)

        conversations = [
            conv.model_copy(update={"unread_count": 0}) if conv.user_id == user_id else conv
            for conv in self.store.state.conversations
        ]
        self.store.dispatch(SetConversations(conversations))

    def set_active_conversation(self, conversation: ConversationSchema | None) -> None:
        self.store.dispatch(SetActiveConversation(conversation))

    def attach_push_events(self) -> Callable[[], None]:
        """Route the service's push hooks into the store; returns a detach callable."""

        def on_new_message(message: MessageSchema) -> None:
            # Bucket by counterpart, whichever side of the exchange we are on
            if message.sender_id != self.self_id:
                user_id = message.sender_id
            else:
                user_id = message.recipient_id
            self.store.dispatch(AddMessage(user_id, message))

        def on_status(message_id: int, status) -> None:
            self.store.dispatch(UpdateMessageStatus(message_id, status))

        detachers = [
            self.service.on_new_message(on_new_message),
            self.service.on_message_status_update(on_status),
        ]

        def detach() -> None:
            for detacher in detachers:
                detacher()

        return detach
