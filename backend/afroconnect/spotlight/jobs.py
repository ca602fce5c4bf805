"""Daily spotlight rotation job."""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..integrations.cache import CacheService
from .service import ensure_spotlight_for_day

logger = logging.getLogger(__name__)


def rotate_spotlight(db: Session, cache: CacheService | None = None, now: datetime | None = None) -> int:
    """Fill today's spotlight slots. Returns how many slots the day holds."""
    spots = ensure_spotlight_for_day(db, now, cache=cache)
    return len(spots)
