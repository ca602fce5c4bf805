"""Anthropic API client for spotlight blurbs, with JSON parsing and cost tracking."""

import json
import logging
import re

import anthropic

from ..config import settings
from ..prompts import SPOTLIGHT_BLURB_SYSTEM_PROMPT, SPOTLIGHT_BLURB_USER_PROMPT

logger = logging.getLogger(__name__)

MODELS = {
    "haiku": "claude-haiku-4-5-20251001",
    "sonnet": "claude-sonnet-4-5-20250929",
}

PRICING = {
    "claude-haiku-4-5-20251001": {"input": 0.80, "output": 4.00},
    "claude-sonnet-4-5-20250929": {"input": 3.00, "output": 15.00},
}

MAX_BLURB_CHARS = 600

_client: anthropic.Anthropic | None = None


def get_client() -> anthropic.Anthropic:
    """Get or create the singleton Anthropic client."""
    global _client
    if _client is None:
        _client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
    return _client


def _calculate_cost(usage: anthropic.types.Usage, model_id: str) -> float:
    pricing = PRICING.get(model_id, PRICING["claude-haiku-4-5-20251001"])
    input_cost = (usage.input_tokens / 1_000_000) * pricing["input"]
    output_cost = (usage.output_tokens / 1_000_000) * pricing["output"]
    return round(input_cost + output_cost, 6)


def _strip_markdown_wrapper(text: str) -> str:
    """Remove markdown code block wrappers (```json ... ``` or ``` ... ```)."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if "```" in text:
            text = text.rsplit("```", 1)[0]
        text = text.strip()
    return text


def _clean_json_text(text: str) -> str:
    """Fix common LLM JSON output issues."""
    # Trailing commas before } or ]
    text = re.sub(r",\s*([}\]])", r"\1", text)
    # Single-line comments
    text = re.sub(r"//[^\n]*", "", text)
    return text


def _extract_and_parse_json(raw_text: str) -> dict:
    """Extract a JSON object from the model output.

    Tries the text as-is, then with syntax fixes, then the outermost
    ``{ ... }`` fragment.
    """
    text = _strip_markdown_wrapper(raw_text)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    try:
        return json.loads(_clean_json_text(text))
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        fragment = text[start : end + 1].replace("\n", " ")
        try:
            return json.loads(_clean_json_text(fragment))
        except json.JSONDecodeError:
            pass

    raise json.JSONDecodeError("No valid JSON found in AI response", text[:200], 0)


def _validate_blurb(data: dict) -> str:
    blurb = data.get("blurb") if isinstance(data, dict) else None
    if not isinstance(blurb, str) or not blurb.strip():
        raise ValueError("AI response has no blurb")
    blurb = " ".join(blurb.split())
    if len(blurb) > MAX_BLURB_CHARS:
        blurb = blurb[:MAX_BLURB_CHARS].rsplit(" ", 1)[0] + "..."
    return blurb


def generate_spotlight_blurb(
    name: str,
    industry: str = "",
    location: str = "",
    description: str = "",
    model: str = "haiku",
) -> dict:
    """Generate a two-sentence spotlight blurb for a company."""
    model_id = MODELS.get(model, MODELS["haiku"])
    user_prompt = SPOTLIGHT_BLURB_USER_PROMPT.format(
        name=name,
        industry=industry or "Business",
        location=location or "International",
        description=(description or "Professional services company")[:1500],
    )

    client = get_client()
    message = client.messages.create(
        model=model_id,
        max_tokens=300,
        system=SPOTLIGHT_BLURB_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": user_prompt}],
    )
    raw_text = message.content[0].text

    try:
        blurb = _validate_blurb(_extract_and_parse_json(raw_text))
    except json.JSONDecodeError:
        logger.warning(
            "Blurb JSON parse failed (model=%s, response_len=%d, first_100=%r)",
            model_id,
            len(raw_text),
            raw_text[:100],
        )
        # Plain prose is still usable as a blurb
        blurb = _validate_blurb({"blurb": _strip_markdown_wrapper(raw_text)})

    usage = message.usage
    return {
        "blurb": blurb,
        "model_used": model_id,
        "tokens": {
            "input": usage.input_tokens,
            "output": usage.output_tokens,
            "total": usage.input_tokens + usage.output_tokens,
        },
        "cost_usd": _calculate_cost(usage, model_id),
    }
