"""Notification inbox routes."""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user
from .service import list_for_user, mark_all_read, mark_read, serialize_notification

router = APIRouter(tags=["notifications"])


@router.get("/notifications")
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notifications = list_for_user(db, user.id, unread_only=unread_only)
    return JSONResponse(
        {
            "notifications": [serialize_notification(n) for n in notifications],
            "unreadCount": sum(1 for n in notifications if not n.is_read),
        }
    )


@router.post("/notifications/mark-all-read")
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    count = mark_all_read(db, user.id)
    db.commit()
    return JSONResponse({"ok": True, "updated": count})


@router.post("/notifications/{notification_id}/mark-read")
def mark_notification_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not mark_read(db, notification_id, user.id):
        return JSONResponse({"error": "Notification not found"}, status_code=404)
    db.commit()
    return JSONResponse({"ok": True})
