"""Document expiry reminders, run daily by the job scheduler."""

import logging
import math
from datetime import datetime

from sqlalchemy.orm import Session

from ..config import settings
from ..notifications.models import NotificationType
from ..notifications.service import already_notified, create_notification
from ..timeutils import as_utc, utcnow
from .models import Document
from .service import find_expiring

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400


def days_until_expiry(expiry: datetime, now: datetime) -> int:
    """Whole days left before expiry, rounded up."""
    return math.ceil((as_utc(expiry) - now).total_seconds() / _SECONDS_PER_DAY)


def expiry_reminder_key(document: Document, days: int) -> str:
    """Idempotency key for one reminder threshold of one document expiry."""
    return f"document:{document.id}:{as_utc(document.expiry):%Y-%m-%d}:{days}d"


def expiry_message(title: str, days: int) -> str:
    return f'Document "{title}" expires in {days} day{"s" if days > 1 else ""}'


def send_document_expiry_reminders(db: Session, now: datetime | None = None) -> int:
    """Notify owners of documents hitting a reminder threshold.

    Returns the number of notifications created. Errors propagate and abort
    the whole run.
    """
    now = as_utc(now) if now else utcnow()
    thresholds = set(settings.document_expiry_threshold_days)

    created = 0
    for document in find_expiring(db, now, settings.document_expiry_window_days):
        days = days_until_expiry(document.expiry, now)
        if days not in thresholds:
            continue

        key = expiry_reminder_key(document, days)
        if already_notified(db, document.owner_id, key):
            continue

        create_notification(
            db,
            document.owner_id,
            NotificationType.DOCUMENT_EXPIRY,
            expiry_message(document.title, days),
            link=key,
        )
        created += 1
        logger.info("Expiry reminder sent for %s (%d days)", document.title, days)

    return created
