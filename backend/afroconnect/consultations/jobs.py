"""Consultation reminders, run every 15 minutes by the job scheduler.

Two windows are checked on each tick, one hour and one day ahead. Each
window is as wide as the tick interval and starts from the tick time rounded
down to the minute, so a tick that fires a few seconds late still lines up
with the previous one.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..config import settings
from ..notifications.models import NotificationType
from ..notifications.service import already_notified, create_notification
from ..timeutils import as_utc, utcnow
from .models import Consultation
from .service import find_starting_between

logger = logging.getLogger(__name__)

# (label, lead time, wording)
REMINDER_WINDOWS = (
    ("1h", timedelta(hours=1), "in 1 hour"),
    ("1d", timedelta(days=1), "in 24 hours"),
)


def reminder_key(consultation: Consultation, label: str) -> str:
    """Idempotency key: consultation id + start rounded to the minute + window."""
    start = as_utc(consultation.start).replace(second=0, microsecond=0)
    return f"consultation:{consultation.id}:{start:%Y%m%dT%H%M}:{label}"


def reminder_message(consultation: Consultation, wording: str) -> str:
    kind = consultation.service_type or "consultation"
    start = as_utc(consultation.start)
    return f"Reminder: your {kind} session starts {wording} ({start:%Y-%m-%d %H:%M} UTC)"


def send_consultation_reminders(db: Session, now: datetime | None = None) -> int:
    """Notify buyer and provider of approved consultations entering a window.

    Returns the number of notifications created.
    """
    now = (as_utc(now) if now else utcnow()).replace(second=0, microsecond=0)
    tolerance = timedelta(minutes=settings.consultation_reminder_tolerance_minutes)

    created = 0
    for label, lead, wording in REMINDER_WINDOWS:
        window_start = now + lead
        window_end = window_start + tolerance
        for consultation in find_starting_between(db, window_start, window_end):
            key = reminder_key(consultation, label)
            message = reminder_message(consultation, wording)
            for user_id in (consultation.buyer_id, consultation.provider_id):
                if user_id is None or already_notified(db, user_id, key):
                    continue
                create_notification(db, user_id, NotificationType.CONSULTATION_REMINDER, message, link=key)
                created += 1
            logger.info("Consultation %s reminder (%s) processed", consultation.id, label)

    return created
