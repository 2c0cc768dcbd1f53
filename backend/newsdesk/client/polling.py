from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from newsdesk.client.context import MessageContext
from newsdesk.client.state import MessageState, SetError
from newsdesk.config import settings

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Two timer loops that keep the store fresh without user action.

    The conversation loop refreshes the conversation list; the message loop
    refreshes the active conversation's history. Each tick is gated on the
    store's ``last_poll`` stamps, and a loop is re-armed whenever the stamp it
    is gated on (or the active counterpart) changes, so a manual reload pushes
    the next fetch back. Stopping cancels the timers only: a fetch already in
    flight still lands in the store.
    """

    def __init__(
        self,
        context: MessageContext,
        *,
        conversation_interval: float | None = None,
        message_interval: float | None = None,
        sort: str = "latest",
    ) -> None:
        self.context = context
        self.conversation_interval = (
            conversation_interval
            if conversation_interval is not None
            else settings.CONVERSATION_POLL_SECONDS
        )
        self.message_interval = (
            message_interval if message_interval is not None else settings.MESSAGE_POLL_SECONDS
        )
        self.sort = sort
        self._conversation_timer: asyncio.Task | None = None
        self._message_timer: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._conversation_armed: float | None = None
        self._message_armed: tuple[int | None, float | None] = (None, None)
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._conversation_timer is not None

    # ── Ticks ─────────────────────────────────────────────────────────────

    async def poll_conversations(self) -> bool:
        """Refresh the conversation list if the interval has elapsed. Returns True if fetched."""
        stamp = self.context.store.state.last_poll.conversations
        if not self._due(stamp, self.conversation_interval):
            logger.debug("conversation poll skipped: polled %.1fs ago", self._since(stamp))
            return False
        await self._guarded(self.context.load_conversations(self.sort), "conversations")
        return True

    async def poll_messages(self) -> bool:
        """Refresh the active conversation if its interval has elapsed. Returns True if fetched."""
        state = self.context.store.state
        if state.active_conversation is None:
            return False
        user_id = state.active_conversation.user_id
        stamp = state.last_poll.messages.get(user_id)
        if not self._due(stamp, self.message_interval):
            logger.debug(
                "message poll for %s skipped: polled %.1fs ago", user_id, self._since(stamp)
            )
            return False
        await self._guarded(self.context.load_messages(user_id), f"messages for {user_id}")
        return True

    def _since(self, stamp: float) -> float:
        return self.context.store.clock() - stamp

    def _due(self, stamp: float | None, interval: float) -> bool:
        if stamp is None:
            return True
        elapsed = self._since(stamp)
        # A clock that went backwards leaves the stamp in the future
        return elapsed < 0 or elapsed >= interval

    async def _guarded(self, fetch: Awaitable[None], what: str) -> None:
        try:
            await fetch
        except Exception as exc:
            logger.warning("poll of %s failed: %s", what, exc)
            self.context.store.dispatch(SetError(str(exc) or f"Failed to poll {what}"))

    # ── Timers ────────────────────────────────────────────────────────────

    async def _run_every(self, interval: float, tick: Callable[[], Awaitable[bool]]) -> None:
        while True:
            await asyncio.sleep(interval)
            task = asyncio.create_task(tick())
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

    @staticmethod
    def _conversation_key(state: MessageState) -> float | None:
        return state.last_poll.conversations

    @staticmethod
    def _message_key(state: MessageState) -> tuple[int | None, float | None]:
        if state.active_conversation is None:
            return (None, None)
        user_id = state.active_conversation.user_id
        return (user_id, state.last_poll.messages.get(user_id))

    def _arm_conversations(self) -> None:
        if self._conversation_timer is not None:
            self._conversation_timer.cancel()
        self._conversation_timer = asyncio.create_task(
            self._run_every(self.conversation_interval, self.poll_conversations)
        )

    def _arm_messages(self) -> None:
        if self._message_timer is not None:
            self._message_timer.cancel()
        self._message_timer = asyncio.create_task(
            self._run_every(self.message_interval, self.poll_messages)
        )

    def _on_state(self, state: MessageState) -> None:
        conversation_key = self._conversation_key(state)
        if conversation_key != self._conversation_armed:
            self._conversation_armed = conversation_key
            self._arm_conversations()

        message_key = self._message_key(state)
        if message_key != self._message_armed:
            if message_key[0] != self._message_armed[0]:
                logger.debug(
                    "active conversation changed %s -> %s", self._message_armed[0], message_key[0]
                )
            self._message_armed = message_key
            self._arm_messages()

    def start(self) -> None:
        """Start both loops. Must be called from a running event loop."""
        if self.running:
            return
        state = self.context.store.state
        self._conversation_armed = self._conversation_key(state)
        self._message_armed = self._message_key(state)
        self._arm_conversations()
        self._arm_messages()
        self._unsubscribe = self.context.store.subscribe(self._on_state)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for timer in (self._conversation_timer, self._message_timer):
            if timer is not None:
                timer.cancel()
        self._conversation_timer = None
        self._message_timer = None
