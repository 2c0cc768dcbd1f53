from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from newsdesk.auth import current_admin, current_user
from newsdesk.database import get_db
from newsdesk.models.user import User
from newsdesk.schemas.messages import (
    ConversationListResponseSchema,
    ConversationSort,
    MarkReadRequestSchema,
    MarkReadResponseSchema,
    MessageListResponseSchema,
    MessageSchema,
    SendMessageRequestSchema,
    SendMessageResponseSchema,
)
from newsdesk.services import inbox_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/conversations", response_model=ConversationListResponseSchema)
def get_conversations(
    sort: ConversationSort = Query("latest", description="Sort order: latest/oldest/unread"),
    admin: User = Depends(current_admin),
    db: Session = Depends(get_db),
):
    """List every user the admin has exchanged messages with."""
    conversations = inbox_service.list_conversations(db, admin, sort)
    return ConversationListResponseSchema(conversations=conversations, count=len(conversations))


@router.get("", response_model=MessageListResponseSchema)
def get_messages(
    user_id: int = Query(..., description="The counterpart's user ID"),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    messages = [
        MessageSchema.model_validate(m) for m in inbox_service.list_messages(db, user, user_id)
    ]
    return MessageListResponseSchema(messages=messages, count=len(messages))


@router.post("/send", response_model=SendMessageResponseSchema)
def send_message(
    body: SendMessageRequestSchema,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        message = inbox_service.send_message(db, user, body.recipient_id, body.content, body.type)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    return SendMessageResponseSchema(message_id=message.id, timestamp=message.created_at)


@router.post("/read", response_model=MarkReadResponseSchema)
def mark_messages_read(
    body: MarkReadRequestSchema,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
):
    """Acknowledge every unread message from ``body.user_id``."""
    updated = inbox_service.mark_read(db, user, body.user_id)
    return MarkReadResponseSchema(updated_count=updated)
