"""Consultation booking routes."""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user
from ..schemas import ConsultationCreateRequest, ConsultationStatusRequest
from .service import create_consultation, list_for_buyer, list_for_provider, serialize_consultation, update_status

router = APIRouter(tags=["consultations"])


@router.get("/consultations")
def list_consultations(
    role: str = "buyer",
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if role not in ("buyer", "provider"):
        return JSONResponse({"error": "role must be 'buyer' or 'provider'"}, status_code=400)
    consultations = list_for_provider(db, user.id) if role == "provider" else list_for_buyer(db, user.id)
    return JSONResponse({"consultations": [serialize_consultation(c) for c in consultations]})


@router.post("/consultations", status_code=201)
def book_consultation(
    body: ConsultationCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    consultation = create_consultation(
        db,
        body.provider_id,
        user.id,
        body.start,
        end=body.end,
        service_type=body.service_type,
        topic=body.topic,
        notes=body.notes,
    )
    db.commit()
    return JSONResponse({"ok": True, "consultation": serialize_consultation(consultation)}, status_code=201)


@router.put("/consultations/{consultation_id}/status")
def change_consultation_status(
    consultation_id: UUID,
    body: ConsultationStatusRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    consultation = update_status(db, consultation_id, user.id, body.status, body.video_link)
    db.commit()
    return JSONResponse({"ok": True, "consultation": serialize_consultation(consultation)})
