"""Tests for MessageContext, which feeds service results into the store."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from newsdesk.client.context import MessageContext, MessageReadError, MessageSendError
from newsdesk.client.service import (
    ApiResponse,
    ConversationList,
    MessageList,
    MessageService,
    SendReceipt,
)
from newsdesk.client.state import (
    MessageStore,
    SetActiveConversation,
    SetConversations,
    SetMessages,
)
from newsdesk.client.transport import MessageTransport
from newsdesk.schemas.messages import ConversationSchema, MessageSchema

SELF_ID = 1


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_service() -> MagicMock:
    service = MagicMock(spec=MessageService)
    service.get_conversations = AsyncMock()
    service.get_messages = AsyncMock()
    service.send_message = AsyncMock()
    service.mark_messages_as_read = AsyncMock()
    return service


def _make_context(service=None, now: float = 1000.0) -> MessageContext:
    store = MessageStore(clock=lambda: now)
    return MessageContext(service or _make_service(), store, self_id=SELF_ID)


def _conv(user_id: int, unread: int = 0) -> ConversationSchema:
    return ConversationSchema(user_id=user_id, email=f"u{user_id}@example.com", unread_count=unread)


def _msg(msg_id: int, sender: int = 2, recipient: int = SELF_ID) -> MessageSchema:
    return MessageSchema(
        id=msg_id,
        sender_id=sender,
        recipient_id=recipient,
        content=f"m{msg_id}",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


# ---------------------------------------------------------------------------
# load_conversations / load_messages
# ---------------------------------------------------------------------------


def test_load_conversations_success():
    ctx = _make_context()
    ctx.service.get_conversations.return_value = ApiResponse(
        success=True, data=ConversationList(conversations=[_conv(2), _conv(3)], count=2)
    )

    asyncio.run(ctx.load_conversations("unread"))

    ctx.service.get_conversations.assert_awaited_once_with("unread")
    assert [c.user_id for c in ctx.state.conversations] == [2, 3]
    assert ctx.state.loading.conversations is False
    assert ctx.state.last_poll.conversations == 1000.0


def test_load_conversations_failure_sets_error_only():
    ctx = _make_context()
    ctx.service.get_conversations.return_value = ApiResponse(success=False, error="Network Error")

    asyncio.run(ctx.load_conversations())

    assert ctx.state.error == "Network Error"
    assert ctx.state.loading.conversations is False
    assert ctx.state.conversations == []
    assert ctx.state.last_poll.conversations is None


def test_load_messages_success():
    ctx = _make_context()
    ctx.service.get_messages.return_value = ApiResponse(
        success=True, data=MessageList(messages=[_msg(1), _msg(2)])
    )

    asyncio.run(ctx.load_messages(2))

    assert [m.id for m in ctx.state.messages[2]] == [1, 2]
    assert ctx.state.loading.messages[2] is False
    assert ctx.state.last_poll.messages[2] == 1000.0


def test_load_messages_failure_touches_only_error_and_loading():
    ctx = _make_context()
    ctx.store.dispatch(SetMessages(2, [_msg(1)]))
    before = ctx.state
    ctx.service.get_messages.return_value = ApiResponse(success=False, error="Failed to get messages")

    asyncio.run(ctx.load_messages(2))

    after = ctx.state
    assert after.error == "Failed to get messages"
    assert after.loading.messages[2] is False
    assert after.messages == before.messages
    assert after.last_poll == before.last_poll
    assert after.conversations == before.conversations


# ---------------------------------------------------------------------------
# send_message
# ---------------------------------------------------------------------------


def test_send_message_echoes_optimistically():
    ctx = _make_context()
    ctx.store.dispatch(SetConversations([_conv(1)]))
    ctx.service.send_message.return_value = ApiResponse(
        success=True,
        data=SendReceipt(message_id=42, timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc)),
    )

    echoed = asyncio.run(ctx.send_message(1, "hello", "text"))

    ctx.service.send_message.assert_awaited_once_with(1, "hello", "text")
    last = ctx.state.messages[1][-1]
    assert last == echoed
    assert last.id == 42
    assert last.sender_id == SELF_ID
    assert last.recipient_id == 1
    assert last.content == "hello"
    assert last.is_read == 0
    assert last.status == "sent"
    assert last.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert ctx.state.conversations[0].last_message == "hello"


def test_send_message_failure_raises_and_does_not_echo():
    ctx = _make_context()
    ctx.service.send_message.return_value = ApiResponse(
        success=False, error="Users can only message admin"
    )

    with pytest.raises(MessageSendError, match="Users can only message admin"):
        asyncio.run(ctx.send_message(5, "hey"))

    assert ctx.state.messages == {}
    assert ctx.state.error == "Users can only message admin"


# ---------------------------------------------------------------------------
# mark_messages_as_read
# ---------------------------------------------------------------------------


def test_mark_read_resets_unread_count_for_that_conversation():
    ctx = _make_context()
    ctx.store.dispatch(SetConversations([_conv(2, unread=4), _conv(3, unread=1)]))
    ctx.service.mark_messages_as_read.return_value = ApiResponse(success=True)

    asyncio.run(ctx.mark_messages_as_read(2))

    counts = {c.user_id: c.unread_count for c in ctx.state.conversations}
    assert counts == {2: 0, 3: 1}


def test_mark_read_twice_leaves_unread_at_zero():
    ctx = _make_context()
    ctx.store.dispatch(SetConversations([_conv(2, unread=4)]))
    ctx.service.mark_messages_as_read.return_value = ApiResponse(success=True)

    asyncio.run(ctx.mark_messages_as_read(2))
    asyncio.run(ctx.mark_messages_as_read(2))

    assert ctx.state.conversations[0].unread_count == 0
    assert ctx.service.mark_messages_as_read.await_count == 2


def test_mark_read_failure_raises_and_keeps_count():
    ctx = _make_context()
    ctx.store.dispatch(SetConversations([_conv(2, unread=4)]))
    ctx.service.mark_messages_as_read.return_value = ApiResponse(
        success=False, error="Failed to mark messages as read"
    )

    with pytest.raises(MessageReadError):
        asyncio.run(ctx.mark_messages_as_read(2))

    assert ctx.state.conversations[0].unread_count == 4
    assert ctx.state.error == "Failed to mark messages as read"


# ---------------------------------------------------------------------------
# Active conversation / push seam
# ---------------------------------------------------------------------------


def test_set_active_conversation_does_not_fetch():
    ctx = _make_context()

    ctx.set_active_conversation(_conv(2))

    assert ctx.state.active_conversation.user_id == 2
    ctx.service.get_messages.assert_not_awaited()


def test_push_seam_routes_events_into_store():
    transport = MagicMock()
    service = MessageService(transport)
    ctx = _make_context(service)
    ctx.store.dispatch(SetActiveConversation(_conv(2)))
    detach = ctx.attach_push_events()

    service.new_message_events.emit(_msg(9, sender=2, recipient=SELF_ID))
    service.status_events.emit(9, "delivered")

    assert ctx.state.messages[2][-1].id == 9
    assert ctx.state.messages[2][-1].status == "delivered"

    detach()
    assert len(service.new_message_events) == 0
    assert len(service.status_events) == 0


def test_push_seam_outbound_message_goes_to_recipient_bucket():
    service = MessageService(MagicMock())
    ctx = _make_context(service)
    ctx.attach_push_events()

    service.new_message_events.emit(_msg(10, sender=SELF_ID, recipient=3))

    assert [m.id for m in ctx.state.messages[3]] == [10]


def test_push_seam_inbound_from_inactive_counterpart_uses_sender_bucket():
    service = MessageService(MagicMock())
    ctx = _make_context(service)
    ctx.store.dispatch(SetActiveConversation(_conv(2)))
    ctx.attach_push_events()

    service.new_message_events.emit(_msg(11, sender=4, recipient=SELF_ID))

    assert [m.id for m in ctx.state.messages[4]] == [11]
    assert SELF_ID not in ctx.state.messages


# ---------------------------------------------------------------------------
# Malformed server responses (real service over a mock transport)
# ---------------------------------------------------------------------------


def _context_answering(body) -> MessageContext:
    transport = MessageTransport(
        "http://testserver",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body)),
    )
    return _make_context(MessageService(transport))


def test_load_messages_body_without_list_keeps_bucket():
    ctx = _context_answering({"success": True})
    existing = _msg(1)
    ctx.store.dispatch(SetMessages(7, [existing]))

    asyncio.run(ctx.load_messages(7))

    assert ctx.state.messages[7] == [existing]
    assert ctx.state.error == "Failed to get messages"
    assert ctx.state.loading.messages[7] is False


def test_load_conversations_null_list_is_recorded_not_raised():
    ctx = _context_answering({"success": True, "conversations": None})
    ctx.store.dispatch(SetConversations([_conv(2, unread=1)]))

    asyncio.run(ctx.load_conversations())

    assert [c.user_id for c in ctx.state.conversations] == [2]
    assert ctx.state.error == "Failed to get conversations"


def test_send_with_bad_receipt_timestamp_raises_send_error():
    ctx = _context_answering({"success": True, "message_id": 5, "timestamp": "not-a-date"})

    with pytest.raises(MessageSendError):
        asyncio.run(ctx.send_message(1, "hello"))

    assert ctx.state.messages == {}
    assert ctx.state.error == "Failed to send message"
