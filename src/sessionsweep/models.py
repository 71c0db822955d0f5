"""Shared data models — the contract between parser, classifier, cache and trash.

Parser produces transient LogRecord objects and folds them into a SessionSummary.
The classifier fills in the tier fields, the scan cache persists summaries, and
the trash journal records TrashItem entries for soft-deleted session files.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import IntEnum
from pathlib import Path

KIND_USER = "user"
KIND_ASSISTANT = "assistant"
KIND_PROGRESS = "progress"
KIND_OTHER = "other"

CATEGORY_EMPTY = "empty"
CATEGORY_HOOK_ONLY = "hook-only"
CATEGORY_SNAPSHOT_ONLY = "snapshot-only"
CATEGORY_CONVERSATION = "conversation"

MODE_FAST = "fast"
MODE_FULL = "full"

NO_TITLE = "(no title)"

TRASH_STATE_PENDING = "pending"
TRASH_STATE_TRASHED = "trashed"
TRASH_STATE_RESTORING = "restoring"


class Tier(IntEnum):
    """Disposability classes. Lower numbers are safer to delete."""

    AUTO_DELETE = 1
    SUGGESTED = 2
    REVIEW = 3
    KEEP = 4

    @property
    def label(self) -> str:
        return TIER_LABELS[self]


TIER_LABELS: dict[Tier, str] = {
    Tier.AUTO_DELETE: "auto-delete",
    Tier.SUGGESTED: "suggested-delete",
    Tier.REVIEW: "review",
    Tier.KEEP: "keep",
}


@dataclass
class TokenUsage:
    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0

    def add(self, other: TokenUsage) -> None:
        self.input += other.input
        self.output += other.output
        self.cache_read += other.cache_read
        self.cache_write += other.cache_write

    @property
    def total(self) -> int:
        return self.input + self.output + self.cache_read + self.cache_write


@dataclass
class ContentBlock:
    """One entry of a message's content array.

    `text` holds the body of text blocks and the reasoning of thinking blocks.
    """

    type: str  # text, thinking, tool_use, tool_result, ...
    text: str = ""
    name: str | None = None  # tool_use
    id: str | None = None  # tool_use
    input: dict = field(default_factory=dict)  # tool_use
    tool_use_id: str | None = None  # tool_result
    is_error: bool = False  # tool_result


@dataclass
class LogRecord:
    """A single parsed line of a session log. Never persisted."""

    kind: str  # user, assistant, progress, other
    type: str  # raw "type" field as written by the chat tool
    timestamp: datetime | None
    content: list[ContentBlock] = field(default_factory=list)
    usage: TokenUsage | None = None
    model: str | None = None
    progress_type: str | None = None  # data.type of progress records
    slug: str | None = None
    git_branch: str | None = None
    cwd: str | None = None
    version: str | None = None

    @property
    def text(self) -> str:
        """Concatenated text blocks, stripped."""
        return "\n".join(b.text for b in self.content if b.type == "text").strip()


@dataclass
class SessionFile:
    """A discovered session log, before it has been read."""

    session_id: str
    file_path: Path
    project_slug: str


@dataclass
class Enrichment:
    """Fields produced by the deep analysis pass over a full record set."""

    tool_usage: dict[str, int] = field(default_factory=dict)
    total_tool_calls: int = 0
    failed_tool_calls: int = 0
    thinking_blocks: int = 0
    thinking_characters: int = 0
    turn_count: int = 0
    avg_response_length: int = 0
    has_sub_agents: bool = False
    files_touched: list[str] = field(default_factory=list)
    unique_files_count: int = 0
    first_user_message: str = ""
    last_user_message: str = ""
    auto_tags: list[str] = field(default_factory=list)
    language: str = "en"


@dataclass
class SessionSummary:
    """Derived, structured representation of one session log.

    `enrichment` is None for summaries that never went through the deep
    analysis pass; `analyzed` is the discriminant consumers should branch on.
    """

    session_id: str
    file_path: str
    project_slug: str = ""
    project: str = ""
    short_project: str = ""
    size_bytes: int = 0
    scan_mode: str = MODE_FAST

    title: str = NO_TITLE
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    duration_seconds: float = 0.0
    user_message_count: int = 0
    assistant_message_count: int = 0
    total_record_count: int = 0
    category: str = CATEGORY_EMPTY
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    models: list[str] = field(default_factory=list)
    session_slug: str | None = None
    git_branch: str | None = None
    cwd: str | None = None
    version: str | None = None

    # Classification (set by classifier.apply_classification)
    tier: int = 0
    tier_label: str = ""
    auto_tier: int = 0
    reasons: list[str] = field(default_factory=list)
    junk_score: float = 0.0

    enrichment: Enrichment | None = None

    @property
    def analyzed(self) -> bool:
        return self.enrichment is not None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["first_timestamp"] = _iso(self.first_timestamp)
        data["last_timestamp"] = _iso(self.last_timestamp)
        data["analyzed"] = self.analyzed
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SessionSummary:
        if not isinstance(data, dict):
            raise TypeError(f"summary must be an object, not {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["first_timestamp"] = _from_iso(data.get("first_timestamp"))
        kwargs["last_timestamp"] = _from_iso(data.get("last_timestamp"))
        kwargs["token_usage"] = TokenUsage(**(data.get("token_usage") or {}))
        enrichment = data.get("enrichment")
        kwargs["enrichment"] = Enrichment(**enrichment) if enrichment else None
        return cls(**kwargs)


@dataclass
class Classification:
    """Result of classifying one summary.

    `tier` is the visible tier (after any override), `auto_tier` the tier the
    rules alone chose.
    """

    tier: Tier
    auto_tier: Tier
    reasons: list[str] = field(default_factory=list)


@dataclass
class TrashItem:
    """Journal entry for one soft-deleted session file.

    `original_path` is relative to the projects root; entries written by older
    versions may hold an absolute path instead.
    """

    id: str
    original_path: str
    trash_path: str
    trashed_at: datetime
    reason: str = "manual"
    size_bytes: int = 0
    title: str = ""
    project: str = ""
    junk_score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    state: str = TRASH_STATE_TRASHED

    def to_dict(self) -> dict:
        data = asdict(self)
        data["trashed_at"] = self.trashed_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> TrashItem:
        if not isinstance(data, dict):
            raise TypeError(f"trash item must be an object, not {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["trashed_at"] = _from_iso(data["trashed_at"])
        return cls(**kwargs)


@dataclass
class EmptyResult:
    removed: int
    remaining: int


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be an ISO string, not {type(value).__name__}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
