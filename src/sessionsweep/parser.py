"""JSONL parser — reads chat-tool session logs into SessionSummary objects."""

from __future__ import annotations

import json
import logging
import re
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

from sessionsweep.analysis.analyzer import analyze_records
from sessionsweep.models import (
    CATEGORY_CONVERSATION,
    CATEGORY_EMPTY,
    CATEGORY_HOOK_ONLY,
    CATEGORY_SNAPSHOT_ONLY,
    KIND_ASSISTANT,
    KIND_OTHER,
    KIND_PROGRESS,
    KIND_USER,
    MODE_FAST,
    MODE_FULL,
    NO_TITLE,
    ContentBlock,
    LogRecord,
    SessionFile,
    SessionSummary,
    TokenUsage,
)

logger = logging.getLogger(__name__)

HEAD_LINES = 30
TAIL_LINES = 10

TITLE_MAX_CHARS = 80
LARGE_BLOCK_CHARS = 200
HOOK_PROGRESS = "hook_progress"

# Annotation blocks the chat tool injects into user messages.
WRAPPER_TAGS = (
    "system-reminder",
    "background-info",
    "environment",
    "environment_details",
    "env",
    "local-command-caveat",
)

_WRAPPER_RE = re.compile(
    r"<(%s)\b[^>]*>.*?</\1\s*>" % "|".join(re.escape(t) for t in WRAPPER_TAGS),
    re.S,
)
_XML_BLOCK_RE = re.compile(r"<([A-Za-z][\w.:-]*)\b[^>]*>.*?</\1\s*>", re.S)

_KINDS = {KIND_USER, KIND_ASSISTANT, KIND_PROGRESS}


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def parse_record(line: str) -> LogRecord | None:
    """Parse one JSONL line. Returns None for blank, malformed or untyped lines."""
    line = line.strip()
    if not line:
        return None
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(data, dict):
        return None

    rec_type = data.get("type")
    if not isinstance(rec_type, str) or not rec_type:
        return None
    kind = rec_type if rec_type in _KINDS else KIND_OTHER

    message = data.get("message")
    if not isinstance(message, dict):
        message = {}

    usage = None
    model = None
    if kind == KIND_ASSISTANT:
        raw_usage = message.get("usage")
        if isinstance(raw_usage, dict):
            usage = TokenUsage(
                input=_int(raw_usage.get("input_tokens")),
                output=_int(raw_usage.get("output_tokens")),
                cache_read=_int(raw_usage.get("cache_read_input_tokens")),
                cache_write=_int(raw_usage.get("cache_creation_input_tokens")),
            )
        model = _str_or_none(message.get("model"))

    progress_type = None
    progress_data = data.get("data")
    if isinstance(progress_data, dict):
        progress_type = _str_or_none(progress_data.get("type"))

    return LogRecord(
        kind=kind,
        type=rec_type,
        timestamp=_parse_timestamp(data.get("timestamp")),
        content=_parse_content(message.get("content")),
        usage=usage,
        model=model,
        progress_type=progress_type,
        slug=_str_or_none(data.get("slug")),
        git_branch=_str_or_none(data.get("gitBranch")),
        cwd=_str_or_none(data.get("cwd")),
        version=_str_or_none(data.get("version")),
    )


def _parse_content(content: object) -> list[ContentBlock]:
    if isinstance(content, str):
        return [ContentBlock(type="text", text=content)]
    if not isinstance(content, list):
        return []

    blocks: list[ContentBlock] = []
    for item in content:
        if not isinstance(item, dict):
            continue
        item_type = _str_or_none(item.get("type")) or "unknown"
        if item_type == "text":
            blocks.append(ContentBlock(type="text", text=_str(item.get("text"))))
        elif item_type == "thinking":
            blocks.append(ContentBlock(type="thinking", text=_str(item.get("thinking"))))
        elif item_type == "tool_use":
            tool_input = item.get("input")
            blocks.append(
                ContentBlock(
                    type="tool_use",
                    name=_str_or_none(item.get("name")),
                    id=_str_or_none(item.get("id")),
                    input=tool_input if isinstance(tool_input, dict) else {},
                )
            )
        elif item_type == "tool_result":
            blocks.append(
                ContentBlock(
                    type="tool_result",
                    tool_use_id=_str_or_none(item.get("tool_use_id")),
                    is_error=bool(item.get("is_error")),
                )
            )
        else:
            blocks.append(ContentBlock(type=item_type))
    return blocks


def parse_lines(lines: list[str], source: Path | str = "<memory>") -> list[LogRecord]:
    """Parse lines into records, skipping malformed ones."""
    records: list[LogRecord] = []
    for line_num, line in enumerate(lines, 1):
        record = parse_record(line)
        if record is None:
            if line.strip():
                # Location only; line content may hold secrets
                logger.debug("Skipping malformed record at %s:%d", source, line_num)
            continue
        records.append(record)
    return records


# ---------------------------------------------------------------------------
# File reading
# ---------------------------------------------------------------------------


def read_head_tail(
    file_path: Path, head: int = HEAD_LINES, tail: int = TAIL_LINES,
) -> list[str]:
    """Read the first `head` and last `tail` non-blank lines of a file.

    The tail window only ever holds lines after the head window, so the two
    never overlap.
    """
    head_lines: list[str] = []
    tail_lines: deque[str] = deque(maxlen=tail)
    with open(file_path, encoding="utf-8", errors="replace") as f:
        for line in f:
            if not line.strip():
                continue
            if len(head_lines) < head:
                head_lines.append(line)
            elif tail > 0:
                tail_lines.append(line)
    return head_lines + list(tail_lines)


def read_all_lines(file_path: Path) -> list[str]:
    """Read every non-blank line of a file."""
    with open(file_path, encoding="utf-8", errors="replace") as f:
        return [line for line in f if line.strip()]


# ---------------------------------------------------------------------------
# Summarizing
# ---------------------------------------------------------------------------


def summarize_records(
    records: list[LogRecord],
    session_file: SessionFile,
    size_bytes: int,
    mode: str = MODE_FULL,
    analyze: bool = False,
) -> SessionSummary:
    """Fold a record sequence into one SessionSummary.

    A pure function of its inputs: the same records always produce the same
    derived fields.
    """
    project = decode_project_slug(session_file.project_slug)
    summary = SessionSummary(
        session_id=session_file.session_id,
        file_path=str(session_file.file_path),
        project_slug=session_file.project_slug,
        project=project,
        short_project=short_project_name(project),
        size_bytes=size_bytes,
        scan_mode=mode,
        total_record_count=len(records),
    )

    title_content: list[ContentBlock] | None = None
    has_user = False
    has_assistant = False
    has_progress = False
    has_hook_progress = False
    timestamps: list[datetime] = []
    models: list[str] = []

    for rec in records:
        if rec.timestamp is not None:
            timestamps.append(rec.timestamp)

        # First non-empty value wins
        if rec.slug and not summary.session_slug:
            summary.session_slug = rec.slug
        if rec.git_branch and not summary.git_branch:
            summary.git_branch = rec.git_branch
        if rec.cwd and not summary.cwd:
            summary.cwd = rec.cwd
        if rec.version and not summary.version:
            summary.version = rec.version

        if rec.kind == KIND_USER:
            summary.user_message_count += 1
            has_user = True
            if title_content is None and rec.text:
                title_content = rec.content
        elif rec.kind == KIND_ASSISTANT:
            summary.assistant_message_count += 1
            has_assistant = True
            if rec.usage is not None:
                summary.token_usage.add(rec.usage)
            if rec.model and rec.model not in models:
                models.append(rec.model)
        elif rec.kind == KIND_PROGRESS:
            has_progress = True
            if rec.progress_type == HOOK_PROGRESS:
                has_hook_progress = True

    summary.models = models

    if title_content is not None:
        summary.title = extract_title(title_content)

    if timestamps:
        summary.first_timestamp = min(timestamps)
        summary.last_timestamp = max(timestamps)
        summary.duration_seconds = (
            summary.last_timestamp - summary.first_timestamp
        ).total_seconds()

    if not (has_user or has_assistant or has_progress):
        summary.category = CATEGORY_EMPTY
    elif has_user or has_assistant:
        summary.category = CATEGORY_CONVERSATION
    elif has_hook_progress:
        summary.category = CATEGORY_HOOK_ONLY
    else:
        summary.category = CATEGORY_SNAPSHOT_ONLY

    if analyze:
        summary.enrichment = analyze_records(records)

    return summary


def fast_scan(
    session_file: SessionFile, head: int = HEAD_LINES, tail: int = TAIL_LINES,
) -> SessionSummary:
    """Summarize from the head and tail of the file only."""
    size_bytes = session_file.file_path.stat().st_size
    lines = read_head_tail(session_file.file_path, head, tail)
    records = parse_lines(lines, session_file.file_path)
    return summarize_records(records, session_file, size_bytes, mode=MODE_FAST)


def full_scan(session_file: SessionFile, analyze: bool = False) -> SessionSummary:
    """Summarize from every line of the file, optionally with deep analysis."""
    size_bytes = session_file.file_path.stat().st_size
    lines = read_all_lines(session_file.file_path)
    records = parse_lines(lines, session_file.file_path)
    return summarize_records(
        records, session_file, size_bytes, mode=MODE_FULL, analyze=analyze,
    )


# ---------------------------------------------------------------------------
# Titles
# ---------------------------------------------------------------------------


def extract_title(content: str | list[ContentBlock] | None) -> str:
    """Extract a readable one-line title from a user message's content."""
    if isinstance(content, str):
        text = content
    elif content:
        text = next((b.text for b in content if b.type == "text"), "")
    else:
        text = ""

    text = _WRAPPER_RE.sub("", text)
    text = _XML_BLOCK_RE.sub(
        lambda m: "" if len(m.group(0)) >= LARGE_BLOCK_CHARS else m.group(0), text,
    )

    for line in text.splitlines():
        line = " ".join(line.split())
        if line:
            return truncate(line, TITLE_MAX_CHARS)
    return NO_TITLE


def truncate(text: str, max_len: int = TITLE_MAX_CHARS) -> str:
    """Truncate to max_len characters, ending with an ellipsis if cut."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_session_files(root: Path, project: str | None = None) -> list[SessionFile]:
    """Find every session log directly inside each project directory under root.

    Companion directories (and any logs nested inside them) are not sessions.
    """
    root = Path(root)
    if project is not None:
        project_dirs = [root / project]
    else:
        try:
            project_dirs = sorted(p for p in root.iterdir() if p.is_dir())
        except OSError:
            return []

    results: list[SessionFile] = []
    for project_dir in project_dirs:
        try:
            entries = sorted(project_dir.glob("*.jsonl"))
        except OSError:
            continue
        for jsonl_file in entries:
            if not jsonl_file.is_file():
                continue
            results.append(
                SessionFile(
                    session_id=jsonl_file.stem,
                    file_path=jsonl_file,
                    project_slug=project_dir.name,
                )
            )
    return results


def decode_project_slug(slug: str) -> str:
    """Decode a project directory name back to a readable path.

    e.g. '-Users-username-projects-myproject' -> '/Users/username/projects/myproject'
    """
    if not slug:
        return ""
    return slug.replace("-", "/")


def short_project_name(decoded_path: str) -> str:
    """Last path segment of a decoded project path."""
    parts = [p for p in decoded_path.split("/") if p]
    return parts[-1] if parts else decoded_path


def _parse_timestamp(ts: object) -> datetime | None:
    """Parse an ISO 8601 string or Unix milliseconds into an aware datetime."""
    if isinstance(ts, bool):
        return None
    if isinstance(ts, (int, float)):
        try:
            return datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(ts, str) or not ts:
        return None
    try:
        parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    return value if isinstance(value, int) else 0


def _str(value: object) -> str:
    return value if isinstance(value, str) else ""


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None
