"""Spotlight rotation: three promoted companies per UTC day."""

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ..companies.models import Company
from ..config import settings
from ..integrations.cache import CacheService
from ..timeutils import utc_date, utcnow
from .blurbs import generate_blurb
from .models import Spotlight

logger = logging.getLogger(__name__)


def get_spotlight_for_day(db: Session, day: date) -> list[Spotlight]:
    return db.query(Spotlight).filter(Spotlight.date == day).order_by(Spotlight.position.asc()).all()


def recently_spotlighted_ids(db: Session, day: date, lookback_days: int) -> set:
    """Company ids spotlighted in the ``lookback_days`` before ``day``."""
    since = day - timedelta(days=lookback_days)
    rows = (
        db.query(Spotlight.company_id)
        .filter(Spotlight.date >= since, Spotlight.date < day)
        .all()
    )
    return {r.company_id for r in rows}


def _ranked(query, limit: int) -> list[Company]:
    return (
        query.order_by(
            Company.average_rating.desc(),
            Company.trust_score.desc(),
            Company.created_at.desc(),
        )
        .limit(limit)
        .all()
    )


def select_candidates(db: Session, limit: int) -> list[Company]:
    """Top verified companies; every company when none is verified yet."""
    candidates = _ranked(db.query(Company).filter(Company.verified == True), limit)  # noqa: E712
    if not candidates:
        candidates = _ranked(db.query(Company), limit)
    return candidates


def pick_companies(candidates: list[Company], exclude_ids: set, slots: int) -> list[Company]:
    """Skip recent picks unless that leaves fewer than ``slots`` companies."""
    filtered = [c for c in candidates if c.id not in exclude_ids]
    if len(filtered) >= slots:
        return filtered[:slots]
    return candidates[:slots]


def _upsert_slot(db: Session, day: date, position: int, company: Company, blurb: str) -> Spotlight:
    spot = db.query(Spotlight).filter(Spotlight.date == day, Spotlight.position == position).first()
    if spot:
        spot.company = company
        spot.blurb = blurb
    else:
        spot = Spotlight(date=day, position=position, company=company, blurb=blurb)
        db.add(spot)
    db.flush()
    return spot


def ensure_spotlight_for_day(
    db: Session,
    target: datetime | None = None,
    *,
    cache: CacheService | None = None,
    force: bool = False,
    blurb_fn: Callable[[Company], str] | None = None,
) -> list[Spotlight]:
    """Populate the spotlight slots for the target UTC day.

    A day that already has all its slots is left untouched unless ``force``
    is set, so repeated runs on the same day are no-ops.
    """
    day = utc_date(target or utcnow())
    slots = settings.spotlight_slots

    existing = get_spotlight_for_day(db, day)
    if len(existing) >= slots and not force:
        logger.debug("Spotlight for %s already populated", day)
        return existing

    exclude = recently_spotlighted_ids(db, day, settings.spotlight_lookback_days)
    candidates = select_candidates(db, settings.spotlight_candidate_limit)
    picks = pick_companies(candidates, exclude, slots)

    if blurb_fn is None:
        def blurb_fn(company: Company) -> str:
            return generate_blurb(company, cache, use_cache=not force)

    spots = [_upsert_slot(db, day, position, company, blurb_fn(company)) for position, company in enumerate(picks, start=1)]
    stale = [spot for spot in existing if spot.position > len(picks)]
    for spot in stale:
        db.delete(spot)
    if stale:
        db.flush()
    logger.info("Spotlight for %s: %s", day, ", ".join(c.name for c in picks) or "no companies")
    return spots


def serialize_spotlight(spot: Spotlight) -> dict:
    company = spot.company
    return {
        "date": spot.date.isoformat(),
        "position": spot.position,
        "blurb": spot.blurb,
        "company": {
            "id": str(company.id),
            "name": company.name,
            "industry": company.industry,
            "location": company.location,
            "verified": bool(company.verified),
            "averageRating": company.average_rating,
            "trustScore": company.trust_score,
        },
    }
