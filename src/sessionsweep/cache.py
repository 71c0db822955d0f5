"""SQLite-backed scan cache — memoizes summaries keyed by file identity.

An entry is valid only while the file's mtime and size exactly match the
values recorded when it was stored. Updates are held in memory and written on
flush(). The cache is a pure optimization: a file that cannot be read as a
cache is discarded and the cache starts empty.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from sessionsweep.models import SessionSummary

logger = logging.getLogger(__name__)

CACHE_VERSION = 2
PRUNE_EVERY = 10

_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS entries (
    file_path TEXT PRIMARY KEY,
    mtime_ns INTEGER NOT NULL,
    size INTEGER NOT NULL,
    analyzed INTEGER DEFAULT 0,
    summary TEXT NOT NULL
);
"""


@dataclass
class CacheEntry:
    mtime_ns: int
    size: int
    summary: SessionSummary


@dataclass
class CacheStats:
    entries: int
    analyzed: int
    disk_size: int


class ScanCache:
    """Persistent map from session file path to its last computed summary.

    Use as a context manager, or call open()/close() explicitly::

        with ScanCache(path) as cache:
            summary = cache.get(file_path)
    """

    def __init__(self, path: Path, prune_every: int = PRUNE_EVERY):
        self.path = Path(path)
        self.prune_every = prune_every
        self.loaded_version: int | None = None
        self._entries: dict[str, CacheEntry] = {}
        self._dirty: set[str] = set()
        self._deleted: set[str] = set()
        self._flush_count = 0
        self._opened = False

    def __enter__(self) -> ScanCache:
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> ScanCache:
        """Load entries from disk. Safe to call more than once."""
        if self._opened:
            return self
        self._entries = {}
        self._dirty.clear()
        self._deleted.clear()
        if self.path.is_file():
            try:
                self._load()
            except (sqlite3.DatabaseError, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Discarding unreadable scan cache %s: %s", self.path, e)
                self._entries = {}
                self.loaded_version = None
                self._discard_file()
        self._opened = True
        return self

    def close(self) -> None:
        if self._opened:
            self.flush()
        self._opened = False

    def _load(self) -> None:
        con = sqlite3.connect(self.path)
        try:
            tables = {
                r[0] for r in con.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
            if "entries" not in tables:
                raise ValueError("no entries table")
            version = 1
            if "meta" in tables:
                row = con.execute("SELECT value FROM meta WHERE key = 'version'").fetchone()
                version = int(row[0]) if row else 1
            rows = con.execute(
                "SELECT file_path, mtime_ns, size, summary FROM entries"
            ).fetchall()
        finally:
            con.close()

        entries = {}
        for file_path, mtime_ns, size, raw in rows:
            summary = SessionSummary.from_dict(json.loads(raw))
            entries[file_path] = CacheEntry(int(mtime_ns), int(size), summary)

        if version < CACHE_VERSION:
            # Old entries stay, but their enrichment is not trusted
            logger.info(
                "Scan cache %s is version %d, upgrading to %d", self.path, version, CACHE_VERSION,
            )
            for entry in entries.values():
                entry.summary.enrichment = None
            self._dirty.update(entries)
        self.loaded_version = version
        self._entries = entries

    def _discard_file(self) -> None:
        for suffix in ("", "-journal", "-wal", "-shm"):
            try:
                os.remove(f"{self.path}{suffix}")
            except FileNotFoundError:
                pass

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        con = sqlite3.connect(self.path)
        con.executescript(_SCHEMA)
        _migrate(con)
        return con

    def _ensure_open(self) -> None:
        if not self._opened:
            self.open()

    # -- reads and writes --------------------------------------------------

    def get(self, file_path: Path | str, require_analyzed: bool = False) -> SessionSummary | None:
        """Return the cached summary if the file is unchanged, else None.

        Stale entries (changed mtime or size, or a file that can no longer be
        stat'ed) are dropped as a side effect.
        """
        self._ensure_open()
        key = str(file_path)
        entry = self._entries.get(key)
        if entry is None:
            return None

        try:
            st = os.stat(key)
        except OSError:
            self._remove(key)
            return None

        if st.st_mtime_ns != entry.mtime_ns or st.st_size != entry.size:
            self._remove(key)
            return None

        if require_analyzed and not entry.summary.analyzed:
            return None
        return entry.summary

    def put(self, file_path: Path | str, summary: SessionSummary) -> None:
        """Store a summary under the file's current mtime and size.

        Nothing is stored if the file cannot be stat'ed.
        """
        self._ensure_open()
        key = str(file_path)
        try:
            st = os.stat(key)
        except OSError:
            return
        self._entries[key] = CacheEntry(st.st_mtime_ns, st.st_size, summary)
        self._dirty.add(key)
        self._deleted.discard(key)

    def _remove(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self._dirty.discard(key)
            self._deleted.add(key)

    def __contains__(self, file_path: object) -> bool:
        return str(file_path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # -- maintenance -------------------------------------------------------

    def flush(self) -> bool:
        """Write pending changes to disk. Returns False if there was nothing to write.

        Every `prune_every`-th flush also prunes entries for deleted files.
        """
        self._ensure_open()
        self._flush_count += 1
        if self.prune_every and self._flush_count % self.prune_every == 0:
            self.prune()

        if not self._dirty and not self._deleted:
            return False

        con = self._connect()
        try:
            con.executemany(
                "DELETE FROM entries WHERE file_path = ?",
                [(k,) for k in self._deleted],
            )
            con.executemany(
                """INSERT OR REPLACE INTO entries
                    (file_path, mtime_ns, size, analyzed, summary)
                VALUES (?, ?, ?, ?, ?)""",
                [
                    (
                        key,
                        entry.mtime_ns,
                        entry.size,
                        1 if entry.summary.analyzed else 0,
                        json.dumps(entry.summary.to_dict()),
                    )
                    for key, entry in (
                        (k, self._entries[k]) for k in sorted(self._dirty)
                    )
                ],
            )
            con.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('version', ?)",
                (str(CACHE_VERSION),),
            )
            con.commit()
        finally:
            con.close()

        self._dirty.clear()
        self._deleted.clear()
        return True

    def prune(self) -> int:
        """Drop entries whose file no longer exists. Returns the count removed."""
        self._ensure_open()
        gone = [key for key in self._entries if not os.path.exists(key)]
        for key in gone:
            self._remove(key)
        return len(gone)

    def clear(self) -> None:
        """Remove every entry, in memory and on disk."""
        self._ensure_open()
        self._entries = {}
        self._dirty.clear()
        self._deleted.clear()
        con = self._connect()
        try:
            con.execute("DELETE FROM entries")
            con.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES ('version', ?)",
                (str(CACHE_VERSION),),
            )
            con.commit()
        finally:
            con.close()

    def stats(self) -> CacheStats:
        self._ensure_open()
        analyzed = sum(1 for e in self._entries.values() if e.summary.analyzed)
        try:
            disk_size = self.path.stat().st_size
        except OSError:
            disk_size = 0
        return CacheStats(entries=len(self._entries), analyzed=analyzed, disk_size=disk_size)


def _migrate(con: sqlite3.Connection) -> None:
    """Add columns that may be missing from older cache files."""
    cols = {row[1] for row in con.execute("PRAGMA table_info(entries)").fetchall()}
    if "analyzed" not in cols:
        con.execute("ALTER TABLE entries ADD COLUMN analyzed INTEGER DEFAULT 0")
        con.commit()
