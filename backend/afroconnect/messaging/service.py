"""Messaging service: conversations, messages, read receipts."""

import logging
import uuid

from sqlalchemy.orm import Session

from ..auth.models import User
from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..timeutils import as_utc, utcnow
from .models import Conversation, Message, MessageType

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000


def _is_participant(conversation: Conversation, user_id: uuid.UUID) -> bool:
    return any(p.id == user_id for p in conversation.participants)


def get_conversation(db: Session, conversation_id: uuid.UUID, user_id: uuid.UUID | None = None) -> Conversation:
    """Load a conversation, optionally checking that ``user_id`` takes part in it."""
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise NotFoundError("Conversation not found")
    if user_id is not None and not _is_participant(conversation, user_id):
        raise PermissionDenied("Not a participant of this conversation")
    return conversation


def get_or_create_conversation(
    db: Session,
    user_id: uuid.UUID,
    other_user_id: uuid.UUID,
    consultation_id: uuid.UUID | None = None,
) -> Conversation:
    """Return the one-to-one conversation between two users, creating it if needed."""
    if user_id == other_user_id:
        raise ValidationError("Cannot start a conversation with yourself")

    other = db.query(User).filter(User.id == other_user_id).first()
    if not other:
        raise NotFoundError("User not found")

    candidates = (
        db.query(Conversation)
        .filter(
            Conversation.is_group == False,  # noqa: E712
            Conversation.consultation_id == consultation_id,
            Conversation.participants.any(User.id == user_id),
            Conversation.participants.any(User.id == other_user_id),
        )
        .all()
    )
    for conversation in candidates:
        if {p.id for p in conversation.participants} == {user_id, other_user_id}:
            return conversation

    me = db.query(User).filter(User.id == user_id).first()
    if not me:
        raise NotFoundError("User not found")

    conversation = Conversation(is_group=False, consultation_id=consultation_id, participants=[me, other])
    db.add(conversation)
    db.flush()
    logger.info("Conversation %s created between %s and %s", conversation.id, user_id, other_user_id)
    return conversation


def send_message(
    db: Session,
    conversation_id: uuid.UUID,
    sender_id: uuid.UUID,
    content: str,
    message_type: MessageType | str = MessageType.TEXT,
    file_url: str | None = None,
    file_name: str | None = None,
) -> Message:
    """Persist a message and bump the conversation's last-message pointer."""
    try:
        message_type = MessageType(message_type)
    except ValueError:
        raise ValidationError(f"Unknown message type: {message_type}")

    content = (content or "").strip()
    if not content and not file_url:
        raise ValidationError("Message content is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message exceeds {MAX_MESSAGE_LENGTH} characters")

    conversation = get_conversation(db, conversation_id, sender_id)

    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
        file_url=file_url,
        file_name=file_name,
        is_read=False,
    )
    db.add(message)
    db.flush()

    conversation.last_message_id = message.id
    conversation.updated_at = utcnow()
    db.flush()
    return message


def get_conversation_messages(
    db: Session,
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = 50,
) -> list[Message]:
    """Page of messages (newest page first), returned in chronological order."""
    get_conversation(db, conversation_id, user_id)
    page = max(page, 1)
    messages = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return list(reversed(messages))


def get_user_conversations(db: Session, user_id: uuid.UUID, page: int = 1, limit: int = 20) -> list[Conversation]:
    page = max(page, 1)
    return (
        db.query(Conversation)
        .filter(Conversation.participants.any(User.id == user_id))
        .order_by(Conversation.updated_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )


def mark_messages_as_read(db: Session, conversation_id: uuid.UUID, user_id: uuid.UUID) -> int:
    """Mark the other participants' messages as read. Returns the count updated."""
    return (
        db.query(Message)
        .filter(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.is_read == False,  # noqa: E712
        )
        .update({Message.is_read: True}, synchronize_session="fetch")
    )


def _serialize_user(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": str(user.id),
        "firstName": user.first_name,
        "lastName": user.last_name,
        "displayName": user.display_name,
    }


def serialize_message(message: Message) -> dict:
    return {
        "id": str(message.id),
        "conversationId": str(message.conversation_id),
        "senderId": str(message.sender_id),
        "sender": _serialize_user(message.sender),
        "content": message.content,
        "messageType": MessageType(message.message_type).value,
        "fileUrl": message.file_url,
        "fileName": message.file_name,
        "isRead": bool(message.is_read),
        "createdAt": as_utc(message.created_at).isoformat() if message.created_at else None,
    }


def serialize_conversation(db: Session, conversation: Conversation) -> dict:
    last = None
    if conversation.last_message_id:
        last = db.query(Message).filter(Message.id == conversation.last_message_id).first()
    return {
        "id": str(conversation.id),
        "isGroup": bool(conversation.is_group),
        "consultationId": str(conversation.consultation_id) if conversation.consultation_id else None,
        "participants": [_serialize_user(p) for p in conversation.participants],
        "lastMessage": serialize_message(last) if last else None,
        "updatedAt": as_utc(conversation.updated_at).isoformat() if conversation.updated_at else None,
    }
