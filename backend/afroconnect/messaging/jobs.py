"""Scheduled message dispatcher, run every minute by the job scheduler."""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .scheduled_service import get_pending_messages, send_scheduled_message
from .service import serialize_message

logger = logging.getLogger(__name__)


def send_due_scheduled_messages(db: Session, now: datetime | None = None) -> list[dict]:
    """Send every due scheduled message, isolating failures per message.

    Each message is committed on its own so a later failure cannot undo an
    earlier delivery. Returns the serialized messages that were sent.
    """
    pending = get_pending_messages(db, now)
    if not pending:
        logger.debug("No scheduled messages to send")
        return []

    logger.info("Found %d scheduled messages to send", len(pending))
    sent: list[dict] = []
    for scheduled in pending:
        scheduled_id = scheduled.id
        try:
            message, _ = send_scheduled_message(db, scheduled_id, now)
            payload = serialize_message(message)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Database error sending scheduled message %s", scheduled_id)
            continue
        except Exception:
            # Keep the FAILED status written by send_scheduled_message
            db.commit()
            logger.exception("Failed to send scheduled message %s", scheduled_id)
            continue
        sent.append(payload)
        logger.info("Scheduled message %s sent", scheduled_id)
    return sent


async def dispatch_scheduled_messages(db: Session, relay=None, now: datetime | None = None) -> int:
    """Send due messages and push each one to its conversation room."""
    sent = await run_in_threadpool(send_due_scheduled_messages, db, now)
    if relay is not None:
        for payload in sent:
            await relay.emit_to_room(f"conversation_{payload['conversationId']}", "new_message", payload)
    return len(sent)
