"""Spotlight blurbs: Anthropic when configured, industry templates otherwise."""

import logging

from ..companies.models import Company
from ..config import settings
from ..integrations.cache import CacheService

logger = logging.getLogger(__name__)

BLURB_CACHE_TTL = 86400  # 24 hours

FALLBACK_TEMPLATES = {
    "agro": [
        "Leading agricultural producer specializing in sustainable farming practices and premium crop exports.",
        "Innovative agro-business connecting farmers with global markets through quality assurance and fair trade.",
        "Established agricultural cooperative providing high-quality produce with full traceability and certification.",
    ],
    "manufacturing": [
        "Modern manufacturing facility with state-of-the-art equipment and international quality standards.",
        "Industrial manufacturer specializing in precision engineering and custom solutions for global clients.",
        "Established production company with decades of experience in manufacturing excellence and innovation.",
    ],
    "technology": [
        "Cutting-edge technology solutions provider with expertise in digital transformation and innovation.",
        "Software development company specializing in scalable solutions for modern business challenges.",
        "Tech consultancy offering comprehensive digital services and custom software development.",
    ],
    "logistics": [
        "Comprehensive logistics solutions provider with extensive network coverage and reliable service.",
        "International freight and logistics company specializing in cross-border trade facilitation.",
        "End-to-end supply chain management with advanced tracking and efficient delivery systems.",
    ],
    "mining": [
        "Responsible mining operation with sustainable extraction practices and environmental compliance.",
        "Mineral processing company with advanced technology and international safety standards.",
        "Mining enterprise focused on ethical sourcing and community development initiatives.",
    ],
    "finance": [
        "Financial services provider specializing in trade finance and international payment solutions.",
        "Banking institution offering comprehensive financial products for business growth and expansion.",
        "Investment and financing company supporting international trade and business development.",
    ],
    "default": [
        "Established business with strong market presence and commitment to quality service delivery.",
        "Professional service provider with extensive experience and proven track record of success.",
        "Industry leader known for reliability, innovation, and customer-focused solutions.",
    ],
}


def fallback_blurb(company: Company) -> str:
    """Template blurb, stable for a given company."""
    industry = (company.industry or "").strip().lower()
    templates = FALLBACK_TEMPLATES.get(industry, FALLBACK_TEMPLATES["default"])
    blurb = templates[company.id.int % len(templates)]

    if company.location:
        blurb = f"Based in {company.location}, this {blurb[0].lower()}{blurb[1:]}"

    trust = company.trust_score or 0
    if trust >= 90:
        blurb += " With an exceptional trust score, they maintain the highest standards of business excellence."
    elif trust >= 80:
        blurb += " Known for reliability and maintaining strong business partnerships."
    return blurb


def generate_blurb(company: Company, cache: CacheService | None = None, use_cache: bool = True) -> str:
    """Blurb for a spotlight slot. Falls back to a template on any AI failure."""
    cache_key = f"spotlight:blurb:{company.id}"
    if cache and use_cache:
        cached = cache.get(cache_key)
        if cached:
            return cached

    if not settings.anthropic_api_key:
        return fallback_blurb(company)

    from ..integrations.anthropic_client import generate_spotlight_blurb

    try:
        result = generate_spotlight_blurb(
            company.name,
            company.industry or "",
            company.location or "",
            company.description or "",
            model=settings.blurb_model,
        )
    except Exception:
        logger.exception("AI blurb generation failed for %s, using template", company.name)
        return fallback_blurb(company)

    logger.info("Generated blurb for %s (%s, $%.6f)", company.name, result["model_used"], result["cost_usd"])
    if cache:
        cache.set(cache_key, result["blurb"], BLURB_CACHE_TTL)
    return result["blurb"]
