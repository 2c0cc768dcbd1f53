"""Message state container.

``reduce`` is the only way a ``MessageState`` changes: it takes the current
state, an action and the current time and returns a new state, leaving the
input untouched. ``MessageStore`` holds the live state for one client and
notifies subscribers after every dispatch.

Ordering is the caller's job. Message lists are stored exactly as supplied
(ascending by ``created_at``); only ``SetMessages`` may shrink a list.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable, Union

from newsdesk.schemas.messages import ConversationSchema, MessageSchema, MessageStatus

logger = logging.getLogger(__name__)


# ── State ─────────────────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class LoadingState:
    conversations: bool = False
    messages: dict[int, bool] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class PollState:
    # None until the first successful fetch
    conversations: float | None = None
    messages: dict[int, float] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class MessageState:
    conversations: list[ConversationSchema] = dataclasses.field(default_factory=list)
    active_conversation: ConversationSchema | None = None
    messages: dict[int, list[MessageSchema]] = dataclasses.field(default_factory=dict)
    loading: LoadingState = dataclasses.field(default_factory=LoadingState)
    error: str | None = None
    last_poll: PollState = dataclasses.field(default_factory=PollState)


# ── Actions ───────────────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class SetConversations:
    conversations: list[ConversationSchema]


@dataclasses.dataclass(frozen=True)
class SetActiveConversation:
    conversation: ConversationSchema | None


@dataclasses.dataclass(frozen=True)
class SetMessages:
    user_id: int
    messages: list[MessageSchema]


@dataclasses.dataclass(frozen=True)
class AddMessage:
    user_id: int
    message: MessageSchema


@dataclasses.dataclass(frozen=True)
class UpdateMessageStatus:
    message_id: int
    status: MessageStatus


@dataclasses.dataclass(frozen=True)
class SetLoadingConversations:
    loading: bool


@dataclasses.dataclass(frozen=True)
class SetLoadingMessages:
    user_id: int
    loading: bool


@dataclasses.dataclass(frozen=True)
class SetError:
    error: str | None


MessageAction = Union[
    SetConversations,
    SetActiveConversation,
    SetMessages,
    AddMessage,
    UpdateMessageStatus,
    SetLoadingConversations,
    SetLoadingMessages,
    SetError,
]


# ── Reducer ───────────────────────────────────────────────────────────────────


def _with_status(message: MessageSchema, status: MessageStatus) -> MessageSchema:
    # is_read only ever goes 0 -> 1
    is_read = 1 if status == "read" else message.is_read
    return message.model_copy(update={"status": status, "is_read": is_read})


def reduce(state: MessageState, action: MessageAction, now: float) -> MessageState:
    if isinstance(action, SetConversations):
        return dataclasses.replace(
            state,
            conversations=list(action.conversations),
            loading=dataclasses.replace(state.loading, conversations=False),
            last_poll=dataclasses.replace(state.last_poll, conversations=now),
        )

    if isinstance(action, SetActiveConversation):
        return dataclasses.replace(state, active_conversation=action.conversation)

    if isinstance(action, SetMessages):
        return dataclasses.replace(
            state,
            messages={**state.messages, action.user_id: list(action.messages)},
            loading=dataclasses.replace(
                state.loading,
                messages={**state.loading.messages, action.user_id: False},
            ),
            last_poll=dataclasses.replace(
                state.last_poll,
                messages={**state.last_poll.messages, action.user_id: now},
            ),
        )

    if isinstance(action, AddMessage):
        message = action.message
        bucket = [*state.messages.get(action.user_id, []), message]
        conversations = [
            conv.model_copy(
                update={
                    "last_message": message.content,
                    "last_message_time": message.created_at,
                    "last_sender_id": message.sender_id,
                }
            )
            if conv.user_id == action.user_id
            else conv
            for conv in state.conversations
        ]
        return dataclasses.replace(
            state,
            messages={**state.messages, action.user_id: bucket},
            conversations=conversations,
        )

    if isinstance(action, UpdateMessageStatus):
        messages = {}
        for user_id, bucket in state.messages.items():
            if any(m.id == action.message_id for m in bucket):
                bucket = [
                    _with_status(m, action.status) if m.id == action.message_id else m
                    for m in bucket
                ]
            messages[user_id] = bucket
        return dataclasses.replace(state, messages=messages)

    if isinstance(action, SetLoadingConversations):
        return dataclasses.replace(
            state, loading=dataclasses.replace(state.loading, conversations=action.loading)
        )

    if isinstance(action, SetLoadingMessages):
        return dataclasses.replace(
            state,
            loading=dataclasses.replace(
                state.loading,
                messages={**state.loading.messages, action.user_id: action.loading},
            ),
        )

    if isinstance(action, SetError):
        return dataclasses.replace(state, error=action.error)

    return state


# ── Store ─────────────────────────────────────────────────────────────────────


Listener = Callable[[MessageState], None]


class MessageStore:
    """Single-writer holder for a ``MessageState``.

    ``clock`` supplies the ``now`` passed to ``reduce`` and defaults to
    ``time.monotonic``; poll stamps are only ever compared with each other.
    """

    def __init__(
        self,
        initial: MessageState | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = initial if initial is not None else MessageState()
        self.clock = clock
        self._listeners: list[Listener] = []

    @property
    def state(self) -> MessageState:
        return self._state

    def dispatch(self, action: MessageAction) -> MessageState:
        self._state = reduce(self._state, action, self.clock())
        logger.debug("dispatch %s", type(action).__name__)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
