"""Tests for the daily company spotlight rotation."""

import uuid
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from afroconnect.companies.models import Company
from afroconnect.config import settings
from afroconnect.spotlight.blurbs import FALLBACK_TEMPLATES, fallback_blurb, generate_blurb
from afroconnect.spotlight.jobs import rotate_spotlight
from afroconnect.spotlight.models import Spotlight
from afroconnect.spotlight.service import (
    ensure_spotlight_for_day,
    pick_companies,
    serialize_spotlight,
)
from afroconnect.timeutils import utc_date


def _companies(db, count, verified=True):
    companies = []
    for i in range(count):
        company = Company(
            id=uuid.uuid4(),
            name=f"Company {i}",
            industry="logistics",
            verified=verified,
            average_rating=5.0 - i * 0.1,
            trust_score=80,
        )
        db.add(company)
        companies.append(company)
    db.commit()
    return companies


def _spotlight(db, day, companies):
    for position, company in enumerate(companies, start=1):
        db.add(Spotlight(date=day, position=position, company_id=company.id, blurb="old"))
    db.commit()


def _blurb(company):
    return f"About {company.name}"


class TestPickCompanies:
    def test_excludes_recent_when_enough_remain(self):
        a, b, c, d = (MagicMock(id=i) for i in range(4))
        assert pick_companies([a, b, c, d], {0}, 3) == [b, c, d]

    def test_uses_unfiltered_pool_when_too_few_remain(self):
        a, b, c, d = (MagicMock(id=i) for i in range(4))
        assert pick_companies([a, b, c, d], {0, 1}, 3) == [a, b, c]


class TestEnsureSpotlightForDay:
    def test_picks_top_three_by_rating(self, db_session, now):
        companies = _companies(db_session, 5)
        spots = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)
        db_session.commit()

        assert [s.position for s in spots] == [1, 2, 3]
        assert [s.company_id for s in spots] == [c.id for c in companies[:3]]
        assert spots[0].blurb == "About Company 0"
        assert spots[0].date == utc_date(now)

    def test_skips_companies_spotlighted_in_last_week(self, db_session, now):
        companies = _companies(db_session, 6)
        _spotlight(db_session, utc_date(now) - timedelta(days=1), companies[:3])

        spots = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)

        assert [s.company_id for s in spots] == [c.id for c in companies[3:6]]

    def test_week_old_spotlight_still_excluded_but_older_is_not(self, db_session, now):
        companies = _companies(db_session, 6)
        today = utc_date(now)
        _spotlight(db_session, today - timedelta(days=7), companies[:1])
        _spotlight(db_session, today - timedelta(days=8), companies[1:2])

        spots = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)

        picked = [s.company_id for s in spots]
        assert companies[0].id not in picked
        assert picked[0] == companies[1].id

    def test_falls_back_to_full_pool_when_fewer_than_three_remain(self, db_session, now):
        companies = _companies(db_session, 4)
        _spotlight(db_session, utc_date(now) - timedelta(days=2), companies[:2])

        spots = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)

        assert [s.company_id for s in spots] == [c.id for c in companies[:3]]

    def test_unverified_companies_used_when_none_verified(self, db_session, now):
        _companies(db_session, 3, verified=False)
        assert len(ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)) == 3

    def test_verified_companies_preferred(self, db_session, now):
        _companies(db_session, 3, verified=False)
        verified = _companies(db_session, 1)
        spots = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)
        assert [s.company_id for s in spots] == [verified[0].id]

    def test_second_run_same_day_is_noop(self, db_session, now):
        _companies(db_session, 5)
        first = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)
        db_session.commit()

        blurb_fn = MagicMock(return_value="new")
        second = ensure_spotlight_for_day(db_session, now + timedelta(hours=5), blurb_fn=blurb_fn)

        assert [s.id for s in second] == [s.id for s in first]
        blurb_fn.assert_not_called()
        assert db_session.query(Spotlight).count() == 3

    def test_force_rewrites_existing_slots(self, db_session, now):
        _companies(db_session, 5)
        ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)
        db_session.commit()

        spots = ensure_spotlight_for_day(db_session, now, force=True, blurb_fn=lambda c: "fresh")
        db_session.commit()

        assert db_session.query(Spotlight).count() == 3
        assert all(s.blurb == "fresh" for s in spots)

    def test_force_drops_slots_beyond_smaller_pool(self, db_session, now):
        companies = _companies(db_session, 3)
        _spotlight(db_session, utc_date(now), companies)

        with patch.object(settings, "spotlight_candidate_limit", 1):
            spots = ensure_spotlight_for_day(db_session, now, force=True, blurb_fn=_blurb)
        db_session.commit()

        assert [s.position for s in spots] == [1]
        remaining = db_session.query(Spotlight).all()
        assert [(s.position, s.company_id) for s in remaining] == [(1, companies[0].id)]

    def test_no_companies_yields_empty_day(self, db_session, now):
        assert ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb) == []

    def test_serialize_includes_company(self, db_session, now):
        _companies(db_session, 3)
        spot = ensure_spotlight_for_day(db_session, now, blurb_fn=_blurb)[0]
        data = serialize_spotlight(spot)
        assert data["company"]["name"] == "Company 0"
        assert data["company"]["averageRating"] == 5.0
        assert data["date"] == utc_date(now).isoformat()


class TestRotateSpotlight:
    def test_rotation_uses_template_blurbs_without_api_key(self, db_session, null_cache, now):
        _companies(db_session, 4)
        with patch.object(settings, "anthropic_api_key", ""):
            assert rotate_spotlight(db_session, null_cache, now=now) == 3
        blurbs = [s.blurb for s in db_session.query(Spotlight).all()]
        assert all(any(t in b for t in FALLBACK_TEMPLATES["logistics"]) for b in blurbs)


class TestBlurbs:
    def _company(self, **kwargs):
        defaults = {"id": uuid.uuid4(), "name": "Savanna Freight", "industry": "Logistics", "location": "", "trust_score": 50}
        defaults.update(kwargs)
        return Company(**defaults)

    def test_fallback_is_stable_per_company(self):
        company = self._company()
        assert fallback_blurb(company) == fallback_blurb(company)
        assert fallback_blurb(company) in FALLBACK_TEMPLATES["logistics"]

    def test_unknown_industry_uses_default_templates(self):
        assert fallback_blurb(self._company(industry="Spaceflight")) in FALLBACK_TEMPLATES["default"]

    def test_location_prefix_and_trust_suffix(self):
        blurb = fallback_blurb(self._company(location="Lagos", trust_score=95))
        assert blurb.startswith("Based in Lagos, this ")
        assert blurb.endswith("highest standards of business excellence.")

    @pytest.mark.parametrize("trust, suffix", [(85, "strong business partnerships."), (50, ".")])
    def test_trust_suffix_thresholds(self, trust, suffix):
        assert fallback_blurb(self._company(trust_score=trust)).endswith(suffix)

    def test_ai_failure_falls_back_to_template(self):
        company = self._company()
        with (
            patch.object(settings, "anthropic_api_key", "sk-test"),
            patch(
                "afroconnect.integrations.anthropic_client.generate_spotlight_blurb",
                side_effect=RuntimeError("API down"),
            ),
        ):
            assert generate_blurb(company) == fallback_blurb(company)

    def test_ai_blurb_is_cached(self):
        company = self._company()
        cache = MagicMock()
        cache.get.return_value = None
        result = {"blurb": "Fast freight across the Sahel.", "model_used": "m", "cost_usd": 0.0001}
        with (
            patch.object(settings, "anthropic_api_key", "sk-test"),
            patch("afroconnect.integrations.anthropic_client.generate_spotlight_blurb", return_value=result),
        ):
            assert generate_blurb(company, cache) == "Fast freight across the Sahel."
        cache.set.assert_called_once_with(f"spotlight:blurb:{company.id}", "Fast freight across the Sahel.", 86400)

    def test_cached_blurb_skips_ai(self):
        cache = MagicMock()
        cache.get.return_value = "Cached blurb"
        with patch("afroconnect.integrations.anthropic_client.generate_spotlight_blurb") as gen:
            assert generate_blurb(self._company(), cache) == "Cached blurb"
        gen.assert_not_called()
