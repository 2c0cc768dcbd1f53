from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session

from newsdesk.config import settings
from newsdesk.models.message import Message
from newsdesk.models.user import User
from newsdesk.schemas.messages import ConversationSchema

logger = logging.getLogger(__name__)

_UNREAD_STATUSES = ("sent", "delivered")


def _between(a: int, b: int):
    return or_(
        and_(Message.sender_id == a, Message.recipient_id == b),
        and_(Message.sender_id == b, Message.recipient_id == a),
    )


def _time_key(conv: ConversationSchema) -> tuple:
    # Conversations without any message sort as the oldest
    return (conv.last_message_time is not None, conv.last_message_time or 0)


def list_conversations(db: Session, admin: User, sort: str = "latest") -> list[ConversationSchema]:
    """Return one conversation per user who has exchanged messages with ``admin``."""
    counterpart = case(
        (Message.sender_id == admin.id, Message.recipient_id),
        else_=Message.sender_id,
    )
    partner_ids = (
        select(counterpart)
        .where(or_(Message.sender_id == admin.id, Message.recipient_id == admin.id))
        .distinct()
    )
    partners = (
        db.query(User)
        .filter(User.id.in_(partner_ids), User.role == "user")
        .all()
    )

    conversations: list[ConversationSchema] = []
    for partner in partners:
        unread = (
            db.query(func.count(Message.id))
            .filter(
                Message.sender_id == partner.id,
                Message.recipient_id == admin.id,
                Message.status.in_(_UNREAD_STATUSES),
            )
            .scalar()
        )
        last = (
            db.query(Message)
            .filter(_between(admin.id, partner.id))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .first()
        )
        conversations.append(
            ConversationSchema(
                user_id=partner.id,
                email=partner.email,
                user_joined=partner.created_at,
                last_message=last.content if last else None,
                last_message_time=last.created_at if last else None,
                last_sender_id=last.sender_id if last else None,
                unread_count=int(unread or 0),
            )
        )

    if sort == "unread":
        conversations.sort(key=lambda c: (c.unread_count, *_time_key(c)), reverse=True)
    elif sort == "oldest":
        conversations.sort(key=_time_key)
    else:
        conversations.sort(key=_time_key, reverse=True)
    return conversations


def list_messages(db: Session, viewer: User, other_user_id: int) -> list[Message]:
    """Full history between ``viewer`` and ``other_user_id``, oldest first."""
    return (
        db.query(Message)
        .filter(_between(viewer.id, other_user_id))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .limit(settings.MESSAGE_HISTORY_LIMIT)
        .all()
    )


def send_message(
    db: Session,
    sender: User,
    recipient_id: int,
    content: str,
    message_type: str = "text",
) -> Message:
    """Persist a new message from ``sender``.

    Raises ValueError for blank or oversized content, PermissionError when a
    regular user addresses anyone but the admin account, and LookupError when
    the recipient does not exist.
    """
    if not content or not content.strip():
        raise ValueError("Message cannot be empty")
    if len(content) > settings.MESSAGE_MAX_LENGTH:
        raise ValueError(f"Message too long (max {settings.MESSAGE_MAX_LENGTH} chars)")
    if not sender.is_admin and recipient_id != settings.ADMIN_USER_ID:
        raise PermissionError("Users can only message admin")

    recipient = db.query(User).filter(User.id == recipient_id).first()
    if recipient is None:
        raise LookupError(f"Recipient {recipient_id} not found")

    message = Message(
        sender_id=sender.id,
        sender_type="admin" if sender.is_admin else "user",
        recipient_id=recipient.id,
        recipient_type="admin" if recipient.is_admin else "user",
        content=content,
        type=message_type,
        status="sent",
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    logger.info(
        "send_message: message=%s sender=%s recipient=%s type=%s",
        message.id,
        sender.id,
        recipient.id,
        message_type,
    )
    return message


def mark_read(db: Session, viewer: User, other_user_id: int) -> int:
    """Mark every unread message from ``other_user_id`` to ``viewer`` as read.

    Returns the number of rows changed; a repeated call returns 0.
    """
    updated = (
        db.query(Message)
        .filter(
            Message.sender_id == other_user_id,
            Message.recipient_id == viewer.id,
            Message.status.in_(_UNREAD_STATUSES),
        )
        .update({Message.status: "read"}, synchronize_session=False)
    )
    db.commit()
    logger.info("mark_read: viewer=%s from=%s updated=%d", viewer.id, other_user_id, updated)
    return updated
