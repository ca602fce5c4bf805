"""Consultation booking service."""

import uuid
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..auth.models import User
from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..timeutils import as_utc
from .models import Consultation, ConsultationStatus

DEFAULT_DURATION = timedelta(minutes=30)


def create_consultation(
    db: Session,
    provider_id: uuid.UUID,
    buyer_id: uuid.UUID | None,
    start: datetime,
    *,
    end: datetime | None = None,
    service_type: str = "",
    topic: str = "",
    notes: str = "",
) -> Consultation:
    if not db.query(User).filter(User.id == provider_id).first():
        raise NotFoundError("Provider not found")
    start = as_utc(start)
    end = as_utc(end) if end else start + DEFAULT_DURATION
    if end <= start:
        raise ValidationError("Consultation must end after it starts")

    consultation = Consultation(
        provider_id=provider_id,
        buyer_id=buyer_id,
        start=start,
        end=end,
        service_type=service_type,
        topic=topic,
        notes=notes,
        status=ConsultationStatus.PENDING,
    )
    db.add(consultation)
    db.flush()
    return consultation


def update_status(
    db: Session,
    consultation_id: uuid.UUID,
    provider_id: uuid.UUID,
    status: ConsultationStatus | str,
    video_link: str | None = None,
) -> Consultation:
    """Providers approve, reject, complete or cancel their own consultations."""
    try:
        status = ConsultationStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status}")

    consultation = db.query(Consultation).filter(Consultation.id == consultation_id).first()
    if not consultation:
        raise NotFoundError("Consultation not found")
    if consultation.provider_id != provider_id:
        raise PermissionDenied("Only the provider can change this consultation")

    consultation.status = status
    if video_link is not None:
        consultation.video_link = video_link
    db.flush()
    return consultation


def list_for_provider(db: Session, provider_id: uuid.UUID) -> list[Consultation]:
    return (
        db.query(Consultation)
        .filter(Consultation.provider_id == provider_id)
        .order_by(Consultation.start.asc())
        .all()
    )


def list_for_buyer(db: Session, buyer_id: uuid.UUID) -> list[Consultation]:
    return (
        db.query(Consultation)
        .filter(Consultation.buyer_id == buyer_id)
        .order_by(Consultation.start.asc())
        .all()
    )


def find_starting_between(db: Session, window_start: datetime, window_end: datetime) -> list[Consultation]:
    """Approved consultations whose start falls inside [window_start, window_end]."""
    return (
        db.query(Consultation)
        .filter(
            Consultation.status == ConsultationStatus.APPROVED,
            Consultation.start >= window_start,
            Consultation.start <= window_end,
        )
        .order_by(Consultation.start.asc())
        .all()
    )


def serialize_consultation(c: Consultation) -> dict:
    return {
        "id": str(c.id),
        "providerId": str(c.provider_id),
        "buyerId": str(c.buyer_id) if c.buyer_id else None,
        "serviceType": c.service_type,
        "topic": c.topic,
        "start": as_utc(c.start).isoformat(),
        "end": as_utc(c.end).isoformat() if c.end else None,
        "status": ConsultationStatus(c.status).value,
        "videoLink": c.video_link,
    }
