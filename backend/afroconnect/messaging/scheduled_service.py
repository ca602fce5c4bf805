"""Scheduled messages: queue a chat message for later delivery."""

import logging
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..timeutils import as_utc, utcnow
from .models import Message, MessageType, ScheduledMessage, ScheduledMessageStatus
from .service import get_conversation, send_message

logger = logging.getLogger(__name__)


def create_scheduled_message(
    db: Session,
    sender_id: uuid.UUID,
    conversation_id: uuid.UUID,
    content: str,
    scheduled_for: datetime,
    message_type: MessageType | str = MessageType.TEXT,
    file_url: str | None = None,
    file_name: str | None = None,
    now: datetime | None = None,
) -> ScheduledMessage:
    now = now or utcnow()
    scheduled_for = as_utc(scheduled_for)
    if scheduled_for <= now:
        raise ValidationError("scheduled_for must be in the future")
    if not (content or "").strip() and not file_url:
        raise ValidationError("Message content is required")
    try:
        message_type = MessageType(message_type)
    except ValueError:
        raise ValidationError(f"Unknown message type: {message_type}")

    get_conversation(db, conversation_id, sender_id)

    scheduled = ScheduledMessage(
        sender_id=sender_id,
        conversation_id=conversation_id,
        content=content.strip(),
        message_type=message_type,
        file_url=file_url,
        file_name=file_name,
        scheduled_for=scheduled_for,
        status=ScheduledMessageStatus.PENDING,
    )
    db.add(scheduled)
    db.flush()
    return scheduled


def get_user_scheduled_messages(
    db: Session,
    user_id: uuid.UUID,
    status: ScheduledMessageStatus | None = None,
) -> list[ScheduledMessage]:
    query = db.query(ScheduledMessage).filter(ScheduledMessage.sender_id == user_id)
    if status is not None:
        query = query.filter(ScheduledMessage.status == status)
    return query.order_by(ScheduledMessage.scheduled_for.asc()).all()


def get_pending_messages(db: Session, now: datetime | None = None) -> list[ScheduledMessage]:
    """Pending messages whose due time has passed, oldest first."""
    now = now or utcnow()
    return (
        db.query(ScheduledMessage)
        .filter(
            ScheduledMessage.status == ScheduledMessageStatus.PENDING,
            ScheduledMessage.scheduled_for <= now,
        )
        .order_by(ScheduledMessage.scheduled_for.asc())
        .all()
    )


def _get_owned_pending(db: Session, scheduled_message_id: uuid.UUID, user_id: uuid.UUID) -> ScheduledMessage:
    scheduled = (
        db.query(ScheduledMessage)
        .filter(
            ScheduledMessage.id == scheduled_message_id,
            ScheduledMessage.sender_id == user_id,
            ScheduledMessage.status == ScheduledMessageStatus.PENDING,
        )
        .first()
    )
    if not scheduled:
        raise NotFoundError("Scheduled message not found or already processed")
    return scheduled


def send_scheduled_message(
    db: Session,
    scheduled_message_id: uuid.UUID,
    now: datetime | None = None,
) -> tuple[Message, ScheduledMessage]:
    """Deliver one scheduled message.

    Marks it SENT on success. On failure it is marked FAILED and the error
    is re-raised, so a failed message is never picked up again.
    """
    scheduled = db.query(ScheduledMessage).filter(ScheduledMessage.id == scheduled_message_id).first()
    if not scheduled or scheduled.status != ScheduledMessageStatus.PENDING:
        raise NotFoundError("Scheduled message not found or already processed")

    try:
        message = send_message(
            db,
            scheduled.conversation_id,
            scheduled.sender_id,
            scheduled.content,
            scheduled.message_type,
            scheduled.file_url,
            scheduled.file_name,
        )
    except Exception:
        scheduled.status = ScheduledMessageStatus.FAILED
        db.flush()
        raise

    scheduled.status = ScheduledMessageStatus.SENT
    scheduled.sent_at = now or utcnow()
    db.flush()
    return message, scheduled


def cancel_scheduled_message(db: Session, scheduled_message_id: uuid.UUID, user_id: uuid.UUID) -> ScheduledMessage:
    scheduled = _get_owned_pending(db, scheduled_message_id, user_id)
    scheduled.status = ScheduledMessageStatus.CANCELLED
    db.flush()
    return scheduled


def update_scheduled_message(
    db: Session,
    scheduled_message_id: uuid.UUID,
    user_id: uuid.UUID,
    *,
    content: str | None = None,
    scheduled_for: datetime | None = None,
    now: datetime | None = None,
) -> ScheduledMessage:
    scheduled = _get_owned_pending(db, scheduled_message_id, user_id)
    if content is not None:
        if not content.strip():
            raise ValidationError("Message content is required")
        scheduled.content = content.strip()
    if scheduled_for is not None:
        scheduled_for = as_utc(scheduled_for)
        if scheduled_for <= (now or utcnow()):
            raise ValidationError("scheduled_for must be in the future")
        scheduled.scheduled_for = scheduled_for
    db.flush()
    return scheduled


def serialize_scheduled_message(scheduled: ScheduledMessage) -> dict:
    return {
        "id": str(scheduled.id),
        "senderId": str(scheduled.sender_id),
        "conversationId": str(scheduled.conversation_id),
        "content": scheduled.content,
        "messageType": MessageType(scheduled.message_type).value,
        "fileUrl": scheduled.file_url,
        "fileName": scheduled.file_name,
        "scheduledFor": as_utc(scheduled.scheduled_for).isoformat(),
        "status": ScheduledMessageStatus(scheduled.status).value,
        "sentAt": as_utc(scheduled.sent_at).isoformat() if scheduled.sent_at else None,
    }
