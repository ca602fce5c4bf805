"""Conversation, message and scheduled-message models."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Table, Text
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class MessageType(enum.StrEnum):
    TEXT = "TEXT"
    FILE = "FILE"
    IMAGE = "IMAGE"


class ScheduledMessageStatus(enum.StrEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


conversation_participants = Table(
    "conversation_participants",
    Base.metadata,
    Column("conversation_id", UUID(as_uuid=True), ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    is_group = Column(Boolean, default=False)
    consultation_id = Column(
        UUID(as_uuid=True),
        ForeignKey("consultations.id", ondelete="SET NULL"),
        nullable=True,
    )
    # Plain column: a FK here would make conversations <-> messages cyclic
    last_message_id = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        index=True,
    )

    participants = relationship("User", secondary=conversation_participants)
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    message_type = Column(
        SQLEnum(MessageType, values_callable=lambda e: [s.value for s in e]),
        default=MessageType.TEXT,
        nullable=False,
    )
    file_url = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User")

    __table_args__ = (Index("idx_messages_conversation_created", "conversation_id", "created_at"),)


class ScheduledMessage(Base):
    __tablename__ = "scheduled_messages"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sender_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    conversation_id = Column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    message_type = Column(
        SQLEnum(MessageType, values_callable=lambda e: [s.value for s in e]),
        default=MessageType.TEXT,
        nullable=False,
    )
    file_url = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        SQLEnum(ScheduledMessageStatus, values_callable=lambda e: [s.value for s in e]),
        default=ScheduledMessageStatus.PENDING,
        nullable=False,
    )
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    sender = relationship("User")
    conversation = relationship("Conversation")

    __table_args__ = (Index("idx_scheduled_messages_due", "status", "scheduled_for"),)
