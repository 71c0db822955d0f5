"""Four-tier session classification.

Tier 1 — AUTO-DELETE: safe to remove (empty, hook-only, snapshot-only)
Tier 2 — SUGGESTED:   high-confidence junk, a quick human glance recommended
Tier 3 — REVIEW:      could go either way
Tier 4 — KEEP:        real conversations with substance

Rules are tested in the order 1, 4, 2, 3 so that KEEP signals win over the
softer junk signals. Classification never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping

from sessionsweep.analysis.rules import JUNK_TITLE_PATTERNS
from sessionsweep.models import (
    CATEGORY_EMPTY,
    CATEGORY_HOOK_ONLY,
    CATEGORY_SNAPSHOT_ONLY,
    TIER_LABELS,
    Classification,
    SessionSummary,
    Tier,
)

logger = logging.getLogger(__name__)

# Score mapping kept stable for consumers of the old junk/maybe/real labels
TIER_SCORES: dict[Tier, float] = {
    Tier.AUTO_DELETE: 1.0,
    Tier.SUGGESTED: 0.7,
    Tier.REVIEW: 0.4,
    Tier.KEEP: 0.1,
}

KEEP_DURATION_SECONDS = 300
KEEP_LARGE_FILE_BYTES = 50_000
TINY_FILE_BYTES = 1024
SMALL_FILE_BYTES = 4096
BRIEF_SECONDS = 60
SHORT_SECONDS = 120


class _Signals:
    """Numeric view of a summary with absent fields defaulted to zero."""

    def __init__(self, s: SessionSummary):
        e = s.enrichment
        self.category = s.category
        self.title = s.title or ""
        self.size = s.size_bytes or 0
        self.users = s.user_message_count or 0
        self.assistants = s.assistant_message_count or 0
        self.records = s.total_record_count or 0
        self.duration = s.duration_seconds or 0
        self.turns = e.turn_count if e else 0
        self.tool_calls = e.total_tool_calls if e else 0
        self.thinking = e.thinking_blocks if e else 0
        self.files = e.unique_files_count if e else 0


Rule = tuple[Callable[[_Signals], bool], Callable[[_Signals], str]]


def _reason(text: str) -> Callable[[_Signals], str]:
    return lambda _: text


AUTO_DELETE_RULES: list[Rule] = [
    (lambda s: s.category == CATEGORY_EMPTY,
     _reason("empty session (no records)")),
    (lambda s: s.category == CATEGORY_HOOK_ONLY,
     _reason("hook-only (system events, no conversation)")),
    (lambda s: s.category == CATEGORY_SNAPSHOT_ONLY,
     _reason("snapshot-only (file history, no conversation)")),
    (lambda s: s.size < TINY_FILE_BYTES and s.users == 0,
     _reason("tiny file with no user messages")),
    (lambda s: s.records <= 2 and s.users == 0,
     _reason("minimal records, no user messages")),
]

# Deep-analysis signals first, then fallbacks usable on fast scans
KEEP_RULES: list[Callable[[_Signals], bool]] = [
    lambda s: s.turns >= 4,
    lambda s: s.tool_calls >= 3,
    lambda s: s.thinking >= 2,
    lambda s: s.files >= 2,
    lambda s: s.duration > KEEP_DURATION_SECONDS,
    lambda s: s.users >= 3 and s.assistants >= 3,
    lambda s: s.size > KEEP_LARGE_FILE_BYTES and s.users >= 2,
]

SUGGESTED_RULES: list[Rule] = [
    (lambda s: s.users == 1 and s.assistants <= 1 and s.duration < BRIEF_SECONDS,
     _reason("single brief exchange (< 1 min)")),
    (lambda s: is_junk_title(s.title),
     lambda s: f'junk pattern: "{s.title}"'),
    (lambda s: s.users > 0 and s.assistants == 0,
     _reason("no assistant response (abandoned)")),
    (lambda s: s.tool_calls == 0 and s.users <= 2 and s.duration < SHORT_SECONDS,
     _reason("short session with no tool usage")),
    (lambda s: s.size < SMALL_FILE_BYTES and s.users + s.assistants <= 2,
     _reason("tiny session (< 4KB, <= 2 messages)")),
]

# Accumulated, not short-circuited
REVIEW_RULES: list[Rule] = [
    (lambda s: s.users <= 2, _reason("few user messages")),
    (lambda s: 0 < s.duration < SHORT_SECONDS, _reason("short duration")),
    (lambda s: s.assistants == 0, _reason("no assistant response")),
]

REVIEW_FALLBACK_REASON = "needs manual review"


def classify(summary: SessionSummary, override: int | None = None) -> Classification:
    """Compute the tier for one summary without mutating it.

    `override` replaces only the visible tier; `auto_tier` always holds the
    tier the rules chose.
    """
    signals = _Signals(summary)
    auto_tier, reasons = _evaluate(signals)
    return Classification(
        tier=_effective_tier(auto_tier, override, summary.session_id),
        auto_tier=auto_tier,
        reasons=reasons,
    )


def _evaluate(s: _Signals) -> tuple[Tier, list[str]]:
    for test, reason in AUTO_DELETE_RULES:
        if test(s):
            return Tier.AUTO_DELETE, [reason(s)]

    if any(test(s) for test in KEEP_RULES):
        return Tier.KEEP, []

    for test, reason in SUGGESTED_RULES:
        if test(s):
            return Tier.SUGGESTED, [reason(s)]

    reasons = [reason(s) for test, reason in REVIEW_RULES if test(s)]
    return Tier.REVIEW, reasons or [REVIEW_FALLBACK_REASON]


def _effective_tier(auto_tier: Tier, override: int | None, session_id: str) -> Tier:
    if override is None:
        return auto_tier
    try:
        return Tier(int(override))
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid tier override %r for %s", override, session_id)
        return auto_tier


def apply_classification(summary: SessionSummary, result: Classification) -> SessionSummary:
    """Write a classification into the summary's tier fields."""
    summary.tier = int(result.tier)
    summary.tier_label = TIER_LABELS[result.tier]
    summary.auto_tier = int(result.auto_tier)
    summary.reasons = list(result.reasons)
    summary.junk_score = TIER_SCORES[result.tier]
    return summary


def classify_all(
    summaries: Iterable[SessionSummary],
    overrides: Mapping[str, int] | None = None,
) -> list[SessionSummary]:
    """Classify every summary in place. Overrides are keyed by session id."""
    overrides = overrides or {}
    results = []
    for summary in summaries:
        result = classify(summary, overrides.get(summary.session_id))
        results.append(apply_classification(summary, result))
    return results


def tier_label(tier: int) -> str:
    try:
        return TIER_LABELS[Tier(tier)]
    except ValueError:
        return "unknown"


def junk_label(score: float) -> str:
    """Legacy three-way label derived from the tier score."""
    if score >= 0.6:
        return "junk"
    if score >= 0.3:
        return "maybe"
    return "real"


def is_junk_title(text: str | None) -> bool:
    """Check whether a title matches a known throwaway first message."""
    if not text:
        return False
    trimmed = text.strip()
    return any(p.search(trimmed) for p in JUNK_TITLE_PATTERNS)
