"""In-app notification service.

Jobs write notifications through ``create_notification`` and guard against
duplicates with ``already_notified``: the ``link`` column carries a derived
idempotency key, so a second run of the same job finds the first row and
skips it.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from ..timeutils import as_utc, utcnow
from .models import Notification

logger = logging.getLogger(__name__)


def already_notified(db: Session, user_id: uuid.UUID, link: str) -> bool:
    """Check if a notification with this idempotency key exists for the user."""
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.link == link,
        )
        .first()
        is not None
    )


def create_notification(
    db: Session,
    user_id: uuid.UUID,
    notification_type: str,
    message: str,
    link: str | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        message=message,
        is_read=False,
        link=link,
    )
    db.add(notification)
    db.flush()
    logger.debug("Notification %s created for user %s (%s)", notification.id, user_id, notification_type)
    return notification


def list_for_user(db: Session, user_id: uuid.UUID, unread_only: bool = False) -> list[Notification]:
    """Notifications for a user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    return query.order_by(Notification.created_at.desc()).all()


def mark_read(db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """Mark one notification as read. Returns False if it is not the user's."""
    updated = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .update({Notification.is_read: True, Notification.updated_at: utcnow()}, synchronize_session="fetch")
    )
    return updated > 0


def mark_all_read(db: Session, user_id: uuid.UUID) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .update({Notification.is_read: True, Notification.updated_at: utcnow()}, synchronize_session="fetch")
    )


def serialize_notification(n: Notification) -> dict:
    return {
        "id": str(n.id),
        "userId": str(n.user_id),
        "type": n.type,
        "message": n.message,
        "isRead": bool(n.is_read),
        "link": n.link,
        "createdAt": as_utc(n.created_at).isoformat() if n.created_at else None,
    }
