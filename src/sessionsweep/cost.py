"""Cost estimation for sessions based on API pricing."""

from __future__ import annotations

from sessionsweep.models import SessionSummary, TokenUsage

# Pricing per million tokens
DEFAULT_PRICING = {
    "input": 3.00,
    "output": 15.00,
    "cache_read": 0.30,
    "cache_write": 3.75,
}

MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-sonnet-4-6": DEFAULT_PRICING,
    "claude-sonnet-4-5-20250929": DEFAULT_PRICING,
    "claude-opus-4-6": {
        "input": 15.00,
        "output": 75.00,
        "cache_read": 1.50,
        "cache_write": 18.75,
    },
    "claude-haiku-4-5-20251001": {
        "input": 0.80,
        "output": 4.00,
        "cache_read": 0.08,
        "cache_write": 1.00,
    },
}


def estimate_cost(usage: TokenUsage, model: str | None = None) -> float:
    """Estimate cost in USD for token counts under one model's pricing.

    Unknown or missing models use DEFAULT_PRICING. Returns float rounded to
    4 decimal places.
    """
    pricing = MODEL_PRICING.get(model or "", DEFAULT_PRICING)
    cost = (
        usage.input * pricing["input"] / 1_000_000
        + usage.output * pricing["output"] / 1_000_000
        + usage.cache_read * pricing["cache_read"] / 1_000_000
        + usage.cache_write * pricing["cache_write"] / 1_000_000
    )
    return round(cost, 4)


def session_cost(summary: SessionSummary) -> float:
    """Estimate a session's cost, priced at the first model it used."""
    model = summary.models[0] if summary.models else None
    return estimate_cost(summary.token_usage, model)
