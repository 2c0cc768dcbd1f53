from __future__ import annotations

import html
import logging

from newsdesk.client.context import MessageContext, MessageReadError, MessageSendError
from newsdesk.client.state import MessageState
from newsdesk.config import settings
from newsdesk.schemas.messages import ConversationSchema, MessageSchema

logger = logging.getLogger(__name__)

_STRINGS = {
    "server_error": {"en": "Server error", "bn": "সার্ভার ত্রুটি"},
    "message_too_long": {"en": "Message is too long", "bn": "বার্তাটি অনেক দীর্ঘ"},
    "failed_to_mark_read": {"en": "Could not mark messages as read", "bn": "বার্তা পঠিত চিহ্নিত করা যায়নি"},
    "no_messages_in_conversation": {"en": "No messages in this conversation", "bn": "এই কথোপকথনে কোনো বার্তা নেই"},
    "you": {"en": "You", "bn": "আপনি"},
    "image": {"en": "[image]", "bn": "[ছবি]"},
    "file": {"en": "[file]", "bn": "[ফাইল]"},
}

_STATUS_MARKS = {"sent": "✓", "delivered": "✓✓", "read": "✓✓ read"}


def t(key: str, language: str) -> str:
    entry = _STRINGS[key]
    return entry.get(language, entry["en"])


class MessageView:
    """Text rendering of the active conversation plus its input box."""

    def __init__(self, context: MessageContext, language: str = "en") -> None:
        self.context = context
        self.language = language
        self.lines: list[str] = []
        self.notice: str | None = None
        self._unsubscribe = context.store.subscribe(self.render)
        self.render(context.store.state)

    def _body(self, message: MessageSchema) -> str:
        if message.type in ("image", "file"):
            return t(message.type, self.language)
        return html.escape(message.content)

    def render(self, state: MessageState) -> None:
        active = state.active_conversation
        if active is None:
            self.lines = []
            return
        messages = state.messages.get(active.user_id, [])
        if not messages:
            self.lines = [t("no_messages_in_conversation", self.language)]
            return

        lines = []
        for message in messages:
            if message.sender_id == self.context.self_id:
                mark = _STATUS_MARKS.get(message.status, _STATUS_MARKS["sent"])
                lines.append(f"{t('you', self.language)}: {self._body(message)} {mark}")
            else:
                lines.append(f"{active.email}: {self._body(message)}")
        self.lines = lines

    async def open_conversation(self, conversation: ConversationSchema) -> None:
        self.notice = None
        self.context.set_active_conversation(conversation)
        await self.context.load_messages(conversation.user_id)
        if conversation.unread_count > 0:
            try:
                await self.context.mark_messages_as_read(conversation.user_id)
            except MessageReadError as exc:
                logger.warning("mark read for %s failed: %s", conversation.user_id, exc)
                self.notice = t("failed_to_mark_read", self.language)

    async def submit(self, text: str) -> bool:
        """Send ``text`` to the active counterpart. Returns True once echoed."""
        active = self.context.state.active_conversation
        content = text.strip()
        if active is None or not content:
            return False
        if len(content) > settings.MESSAGE_MAX_LENGTH:
            self.notice = t("message_too_long", self.language)
            return False

        try:
            await self.context.send_message(active.user_id, content)
        except MessageSendError:
            error = self.context.state.error
            self.notice = f"{t('server_error', self.language)}: {error}" if error else t("server_error", self.language)
            return False
        self.notice = None
        return True

    def close(self) -> None:
        self._unsubscribe()
