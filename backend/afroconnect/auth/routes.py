"""Authentication routes (session cookie)."""

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import settings
from ..database.base import get_db
from ..rate_limit import limiter
from .service import authenticate_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/login")
@limiter.limit(settings.login_rate_limit)
def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    user = authenticate_user(db, email, password)
    if not user:
        logger.info("Failed login for %s", email)
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)
    request.session["user_id"] = str(user.id)
    return JSONResponse({"ok": True, "user": {"id": str(user.id), "email": user.email, "displayName": user.display_name}})


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return JSONResponse({"ok": True})
