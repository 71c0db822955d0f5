"""Deep session analysis — enrichment fields from a full record set.

All functions are pure — they take parsed records and return new values.
Parser output is never mutated.
"""

from __future__ import annotations

import re
from collections import Counter
from pathlib import PurePosixPath

from sessionsweep.analysis.rules import (
    DEFAULT_LANGUAGE,
    EXTENSION_TAGS,
    KEYWORD_TAGS,
    LANGUAGE_HINTS,
    LANGUAGE_MIN_MATCHES,
    LANGUAGE_MIN_TEXT,
    PATH_INPUT_KEYS,
    TOOL_TAGS,
)
from sessionsweep.models import (
    KIND_ASSISTANT,
    KIND_PROGRESS,
    KIND_USER,
    ContentBlock,
    Enrichment,
    LogRecord,
)

AUTO_TAG_LIMIT = 5
AGENT_PROGRESS = "agent_progress"

_EXTENSION_RE = re.compile(r"(\.[a-z0-9]+)$", re.I)


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


def analyze_records(records: list[LogRecord]) -> Enrichment:
    """Compute tool usage, thinking metrics, files touched, tags and language."""
    enrichment = Enrichment()
    tool_usage: dict[str, int] = {}
    tag_counts: Counter[str] = Counter()
    files: dict[str, None] = {}  # insertion-ordered set
    response_lengths: list[int] = []
    user_texts: list[str] = []
    tool_use_ids: set[str] = set()
    error_ids: set[str] = set()
    unpaired_errors = 0
    last_kind: str | None = None

    for rec in records:
        if rec.kind == KIND_PROGRESS and rec.progress_type == AGENT_PROGRESS:
            enrichment.has_sub_agents = True

        if rec.kind == KIND_ASSISTANT:
            for block in rec.content:
                if block.type == "thinking":
                    enrichment.thinking_blocks += 1
                    enrichment.thinking_characters += len(block.text)
                elif block.type == "tool_use":
                    name = block.name or "unknown"
                    tool_usage[name] = tool_usage.get(name, 0) + 1
                    enrichment.total_tool_calls += 1
                    if block.id:
                        tool_use_ids.add(block.id)
                    for path in _tool_paths(block):
                        files.setdefault(path)
                    if name in TOOL_TAGS:
                        tag_counts[TOOL_TAGS[name]] += 1
                elif block.type == "text":
                    response_lengths.append(len(block.text))

        if rec.kind == KIND_USER:
            for block in rec.content:
                if block.type == "tool_result" and block.is_error:
                    if block.tool_use_id:
                        error_ids.add(block.tool_use_id)
                    else:
                        unpaired_errors += 1
            text = rec.text
            if text:
                user_texts.append(text)

        # Run-length count of role switches
        if rec.kind in (KIND_USER, KIND_ASSISTANT):
            if rec.kind != last_kind:
                enrichment.turn_count += 1
            last_kind = rec.kind

    # Errors are counted against the tool call they answer
    enrichment.failed_tool_calls = len(error_ids & tool_use_ids) + unpaired_errors
    enrichment.tool_usage = tool_usage

    if response_lengths:
        enrichment.avg_response_length = round(
            sum(response_lengths) / len(response_lengths)
        )

    enrichment.files_touched = list(files)
    enrichment.unique_files_count = len(files)

    if user_texts:
        enrichment.first_user_message = user_texts[0]
        enrichment.last_user_message = user_texts[-1]

    for path in files:
        tag = extension_tag(path)
        if tag:
            tag_counts[tag] += 1

    all_user_text = " ".join(user_texts)
    for pattern, tag in KEYWORD_TAGS:
        if pattern.search(all_user_text):
            tag_counts[tag] += 1

    enrichment.auto_tags = rank_tags(tag_counts)
    enrichment.language = detect_language(all_user_text)
    return enrichment


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def rank_tags(counts: dict[str, int], limit: int = AUTO_TAG_LIMIT) -> list[str]:
    """Top tags by frequency; ties keep first-seen order."""
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])
    return [tag for tag, _ in ranked[:limit]]


def extension_tag(file_path: str) -> str | None:
    match = _EXTENSION_RE.search(PurePosixPath(file_path).name)
    if not match:
        return None
    return EXTENSION_TAGS.get(match.group(1).lower())


def detect_language(text: str) -> str:
    """Guess the language of user text from common-word hits.

    A candidate wins only with at least LANGUAGE_MIN_MATCHES hits and strictly
    more hits than every other candidate; otherwise the default stands.
    """
    if not text or len(text) < LANGUAGE_MIN_TEXT:
        return DEFAULT_LANGUAGE

    counts = {lang: len(pattern.findall(text)) for lang, pattern in LANGUAGE_HINTS.items()}
    best = max(counts.values(), default=0)
    if best < LANGUAGE_MIN_MATCHES:
        return DEFAULT_LANGUAGE
    leaders = [lang for lang, count in counts.items() if count == best]
    if len(leaders) != 1:
        return DEFAULT_LANGUAGE
    return leaders[0]


def _tool_paths(block: ContentBlock) -> list[str]:
    paths = []
    for key in PATH_INPUT_KEYS:
        value = block.input.get(key)
        if isinstance(value, str) and value:
            paths.append(value)
    return paths
