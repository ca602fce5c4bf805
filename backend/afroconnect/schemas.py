"""Request body schemas for the JSON API.

Clients send camelCase keys; snake_case is accepted too.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field("", max_length=1000)
    expiry: datetime | None = None


class ConsultationCreateRequest(CamelModel):
    provider_id: UUID
    start: datetime
    end: datetime | None = None
    service_type: str = Field("", max_length=100)
    topic: str = Field("", max_length=255)
    notes: str = ""


class ConsultationStatusRequest(CamelModel):
    status: str
    video_link: str | None = Field(None, max_length=500)


class ConversationCreateRequest(CamelModel):
    participant_id: UUID
    consultation_id: UUID | None = None


class MessageCreateRequest(CamelModel):
    content: str = ""
    message_type: str = "TEXT"
    file_url: str | None = None
    file_name: str | None = None


class ScheduledMessageCreateRequest(MessageCreateRequest):
    conversation_id: UUID
    scheduled_for: datetime


class ScheduledMessageUpdateRequest(CamelModel):
    content: str | None = None
    scheduled_for: datetime | None = None
