"""Document routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user
from ..schemas import DocumentCreateRequest
from .service import create_document, list_for_owner, serialize_document

router = APIRouter(tags=["documents"])


@router.get("/documents")
def list_documents(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse({"documents": [serialize_document(d) for d in list_for_owner(db, user.id)]})


@router.post("/documents", status_code=201)
def add_document(
    body: DocumentCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    document = create_document(db, user.id, body.title, body.file_url, body.expiry)
    db.commit()
    return JSONResponse({"ok": True, "document": serialize_document(document)}, status_code=201)
