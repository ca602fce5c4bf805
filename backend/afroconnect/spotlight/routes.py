"""Company spotlight routes."""

from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_cache, get_current_user
from ..integrations.cache import CacheService
from ..timeutils import utcnow, utc_date
from .service import ensure_spotlight_for_day, get_spotlight_for_day, serialize_spotlight

router = APIRouter(tags=["spotlight"])


@router.get("/spotlight")
def todays_spotlight(
    day: date | None = None,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    today = utc_date(utcnow())
    day = day or today
    if day == today:
        spots = ensure_spotlight_for_day(db, cache=cache)
        db.commit()
    else:
        spots = get_spotlight_for_day(db, day)
    return JSONResponse({"date": day.isoformat(), "spotlight": [serialize_spotlight(s) for s in spots]})


@router.post("/spotlight/refresh")
def refresh_spotlight(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    cache: CacheService = Depends(get_cache),
):
    spots = ensure_spotlight_for_day(db, cache=cache, force=True)
    db.commit()
    return JSONResponse({"ok": True, "spotlight": [serialize_spotlight(s) for s in spots]})
