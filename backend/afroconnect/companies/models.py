"""Directory company model (read by the spotlight rotation)."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    industry = Column(String(100), default="")
    location = Column(String(255), default="")
    description = Column(Text, default="")
    verified = Column(Boolean, default=False, index=True)
    average_rating = Column(Float, default=0.0)
    trust_score = Column(Integer, default=0)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
