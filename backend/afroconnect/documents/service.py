"""Document service: compliance documents with an optional expiry date."""

import uuid
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..timeutils import as_utc, utcnow
from .models import Document


def create_document(
    db: Session,
    owner_id: uuid.UUID,
    title: str,
    file_url: str = "",
    expiry: datetime | None = None,
) -> Document:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Document title is required")
    document = Document(
        owner_id=owner_id,
        title=title,
        file_url=file_url,
        expiry=as_utc(expiry) if expiry else None,
    )
    db.add(document)
    db.flush()
    return document


def list_for_owner(db: Session, owner_id: uuid.UUID) -> list[Document]:
    return (
        db.query(Document)
        .filter(Document.owner_id == owner_id)
        .order_by(Document.created_at.desc())
        .all()
    )


def find_expiring(db: Session, now: datetime, window_days: int) -> list[Document]:
    """Documents expiring between now and now + window_days."""
    return (
        db.query(Document)
        .filter(
            Document.expiry.isnot(None),
            Document.expiry >= now,
            Document.expiry <= now + timedelta(days=window_days),
        )
        .order_by(Document.expiry.asc())
        .all()
    )


def serialize_document(document: Document, now: datetime | None = None) -> dict:
    expiry = as_utc(document.expiry) if document.expiry else None
    return {
        "id": str(document.id),
        "ownerId": str(document.owner_id),
        "title": document.title,
        "fileUrl": document.file_url,
        "expiry": expiry.isoformat() if expiry else None,
        "expired": bool(expiry and expiry < (now or utcnow())),
    }
