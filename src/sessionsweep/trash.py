"""Trash journal — reversible soft-delete of session files.

Moved files live in a trash directory under their original basename; the
journal (a JSON manifest) is the only record of where each one came from, so
it is written synchronously and atomically on every change.

Trash and restore are journaled ahead of the move: the entry is persisted in
a transitional state first, the file is moved, then the entry is finalized.
Entries left in a transitional state by a crash are reconciled against the
filesystem the next time the journal is loaded.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

from sessionsweep.errors import TrashItemNotFoundError, match_id
from sessionsweep.models import (
    TRASH_STATE_PENDING,
    TRASH_STATE_RESTORING,
    TRASH_STATE_TRASHED,
    EmptyResult,
    SessionSummary,
    TrashItem,
)

logger = logging.getLogger(__name__)

JOURNAL_VERSION = 1
SESSION_SUFFIX = ".jsonl"


class TrashJournal:
    """Move session files to a trash directory and back, with provenance."""

    def __init__(self, trash_dir: Path, journal_path: Path, projects_dir: Path):
        self.trash_dir = Path(trash_dir)
        self.journal_path = Path(journal_path)
        self.projects_dir = Path(projects_dir)

    # -- journal persistence -----------------------------------------------

    def _load(self) -> list[TrashItem]:
        """Read the journal. A missing or unreadable journal reads as empty.

        An unreadable journal is set aside next to the original path so the
        entries it held can still be recovered by hand.
        """
        if not self.journal_path.exists():
            return []
        try:
            with self.journal_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            items = [TrashItem.from_dict(raw) for raw in data["items"]]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            self._set_aside_corrupt(e)
            return []

        if self._reconcile(items):
            self._save(items)
        return items

    def _save(self, items: list[TrashItem]) -> None:
        self.journal_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.journal_path.with_name(self.journal_path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(
                {"version": JOURNAL_VERSION, "items": [i.to_dict() for i in items]},
                f,
                indent=2,
            )
        os.replace(tmp, self.journal_path)

    def _set_aside_corrupt(self, error: Exception) -> None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        backup = self.journal_path.with_name(f"{self.journal_path.name}.corrupt-{stamp}")
        logger.warning(
            "Trash journal %s is unreadable (%s); starting empty, old file kept as %s",
            self.journal_path, error, backup,
        )
        try:
            os.replace(self.journal_path, backup)
        except OSError as e:
            logger.warning("Could not set aside corrupt journal %s: %s", self.journal_path, e)

    def _reconcile(self, items: list[TrashItem]) -> bool:
        """Finish or roll back entries interrupted mid-move. Returns True if changed."""
        changed = False
        for item in list(items):
            if item.state == TRASH_STATE_TRASHED:
                continue
            changed = True
            if Path(item.trash_path).exists():
                logger.warning("Recovered interrupted %s of %s: file is in trash", item.state, item.id)
                item.state = TRASH_STATE_TRASHED
            else:
                logger.warning("Recovered interrupted %s of %s: file is not in trash", item.state, item.id)
                items.remove(item)
        return changed

    # -- paths ---------------------------------------------------------------

    def relative_original(self, file_path: Path) -> str:
        """Path to store in the journal: relative to the projects root when inside it."""
        file_path = Path(file_path).absolute()
        try:
            return str(file_path.relative_to(self.projects_dir.absolute()))
        except ValueError:
            return str(file_path)

    def resolve_original(self, stored: str) -> Path:
        """Resolve a journal path; legacy entries hold absolute paths."""
        path = Path(stored)
        if path.is_absolute():
            return path
        return self.projects_dir / path

    # -- queries ---------------------------------------------------------------

    def list(self) -> list[TrashItem]:
        return self._load()

    def find(self, ident: str) -> TrashItem:
        """Find an entry by exact id or unique id prefix."""
        items = self._load()
        return items[_index_of(items, ident)]

    def total_size(self) -> int:
        return sum(i.size_bytes for i in self._load())

    # -- operations ------------------------------------------------------------

    def trash(self, summary: SessionSummary, reason: str = "manual") -> TrashItem:
        """Move a session file (and its companion directory) into the trash."""
        source = Path(summary.file_path)
        if not source.is_file():
            raise FileNotFoundError(f"session file not found: {source}")

        self.trash_dir.mkdir(parents=True, exist_ok=True)
        trash_path = self.trash_dir / source.name
        companion = _companion_of(source)
        trash_companion = _companion_of(trash_path)
        if trash_path.exists() or (companion.is_dir() and trash_companion.exists()):
            raise FileExistsError(f"already in trash: {trash_path}")

        item = TrashItem(
            id=summary.session_id,
            original_path=self.relative_original(source),
            trash_path=str(trash_path),
            trashed_at=datetime.now(timezone.utc),
            reason=reason,
            size_bytes=summary.size_bytes,
            title=summary.title,
            project=summary.short_project,
            junk_score=summary.junk_score,
            reasons=list(summary.reasons),
            state=TRASH_STATE_PENDING,
        )
        items = self._load()
        items.append(item)
        self._save(items)

        try:
            _move_with_companion(source, trash_path)
        except OSError:
            items.remove(item)
            self._save(items)
            raise

        item.state = TRASH_STATE_TRASHED
        self._save(items)
        logger.info("Trashed %s: %s -> %s", item.id, source, trash_path)
        return item

    def restore(self, ident: str) -> Path:
        """Move a trashed session back to where it came from. Returns that path."""
        items = self._load()
        item = items[_index_of(items, ident)]
        original = self.resolve_original(item.original_path)
        trash_path = Path(item.trash_path)
        if original.exists():
            raise FileExistsError(f"restore target already exists: {original}")
        if _companion_of(trash_path).is_dir() and _companion_of(original).exists():
            raise FileExistsError(f"restore target already exists: {_companion_of(original)}")
        if not trash_path.exists():
            raise FileNotFoundError(f"trashed file is missing: {trash_path}")

        item.state = TRASH_STATE_RESTORING
        self._save(items)

        try:
            original.parent.mkdir(parents=True, exist_ok=True)
            _move_with_companion(trash_path, original)
        except OSError:
            item.state = TRASH_STATE_TRASHED
            self._save(items)
            raise

        items.remove(item)
        self._save(items)
        logger.info("Restored %s -> %s", item.id, original)
        return original

    def purge(self, ident: str) -> TrashItem:
        """Permanently delete a trashed session. Files already gone are fine."""
        items = self._load()
        item = items[_index_of(items, ident)]
        _delete_with_companion(Path(item.trash_path))
        items.remove(item)
        self._save(items)
        logger.info("Purged %s", item.id)
        return item

    def empty_older_than(self, days: float = 30, now: datetime | None = None) -> EmptyResult:
        """Purge entries trashed more than `days` ago; 0 purges everything."""
        items = self._load()
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days)

        to_remove: list[TrashItem] = []
        to_keep: list[TrashItem] = []
        for item in items:
            if days <= 0 or _aware(item.trashed_at) < cutoff:
                to_remove.append(item)
            else:
                to_keep.append(item)

        for item in to_remove:
            _delete_with_companion(Path(item.trash_path))

        self._save(to_keep)
        if to_remove:
            logger.info("Emptied %d trashed sessions, %d remaining", len(to_remove), len(to_keep))
        return EmptyResult(removed=len(to_remove), remaining=len(to_keep))


def _index_of(items: list[TrashItem], ident: str) -> int:
    found = match_id(ident, [i.id for i in items])
    if found is None:
        raise TrashItemNotFoundError(ident)
    return next(n for n, i in enumerate(items) if i.id == found)


def _companion_of(file_path: Path) -> Path:
    """Auxiliary directory sharing the session's base name."""
    name = file_path.name
    if name.endswith(SESSION_SUFFIX):
        name = name[: -len(SESSION_SUFFIX)]
    return file_path.with_name(name)


def _move_with_companion(source: Path, dest: Path) -> None:
    """Move a file and its companion directory; undo the file move if the second step fails."""
    shutil.move(str(source), str(dest))
    companion = _companion_of(source)
    if not companion.is_dir():
        return
    try:
        shutil.move(str(companion), str(_companion_of(dest)))
    except OSError:
        shutil.move(str(dest), str(source))
        raise


def _delete_with_companion(trash_path: Path) -> None:
    trash_path.unlink(missing_ok=True)
    companion = _companion_of(trash_path)
    if companion.is_dir():
        shutil.rmtree(companion)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
