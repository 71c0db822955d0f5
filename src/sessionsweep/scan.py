"""Session loading — discovery, cached scanning and classification."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

from sessionsweep.cache import ScanCache
from sessionsweep.classifier import classify_all
from sessionsweep.config import SweepConfig
from sessionsweep.errors import SessionNotFoundError, match_id
from sessionsweep.models import MODE_FAST, MODE_FULL, SessionFile, SessionSummary
from sessionsweep.parser import HEAD_LINES, TAIL_LINES, discover_session_files, fast_scan, full_scan

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
SCAN_MODES = (MODE_FAST, MODE_FULL)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def scan_file(
    session_file: SessionFile,
    mode: str = MODE_FAST,
    analyze: bool = False,
    head_lines: int = HEAD_LINES,
    tail_lines: int = TAIL_LINES,
) -> SessionSummary:
    """Summarize one file. Deep analysis always reads the whole file."""
    if analyze or mode == MODE_FULL:
        return full_scan(session_file, analyze=analyze)
    return fast_scan(session_file, head_lines, tail_lines)


def scan(
    root: Path,
    mode: str = MODE_FAST,
    cache: ScanCache | None = None,
    *,
    project: str | None = None,
    analyze: bool = False,
    batch_size: int = BATCH_SIZE,
    head_lines: int = HEAD_LINES,
    tail_lines: int = TAIL_LINES,
) -> list[SessionSummary]:
    """Summarize every session under root, most recently active first.

    Unchanged files are served from the cache. Files that cannot be read are
    left out of the result. At most `batch_size` files are read at once.
    """
    if mode not in SCAN_MODES:
        raise ValueError(f"unknown scan mode: {mode!r}")

    files = discover_session_files(root, project)
    results: list[SessionSummary] = []
    to_scan: list[SessionFile] = []

    for session_file in files:
        cached = cache.get(session_file.file_path, require_analyzed=analyze) if cache else None
        if cached is not None and _satisfies(cached, mode):
            results.append(cached)
        else:
            to_scan.append(session_file)

    if to_scan:
        workers = max(1, min(batch_size, len(to_scan)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for start in range(0, len(to_scan), batch_size):
                batch = to_scan[start : start + batch_size]
                futures = [
                    (f, pool.submit(scan_file, f, mode, analyze, head_lines, tail_lines))
                    for f in batch
                ]
                for session_file, future in futures:
                    try:
                        summary = future.result()
                    except (OSError, UnicodeError) as e:
                        logger.warning("Skipping unreadable session %s: %s", session_file.file_path, e)
                        continue
                    if cache is not None:
                        cache.put(session_file.file_path, summary)
                    results.append(summary)

    logger.debug(
        "Scanned %d sessions (%d from cache)", len(results), len(files) - len(to_scan),
    )
    return sort_by_last_activity(results)


def _satisfies(summary: SessionSummary, mode: str) -> bool:
    return mode == MODE_FAST or summary.scan_mode == MODE_FULL


def sort_by_last_activity(summaries: list[SessionSummary]) -> list[SessionSummary]:
    """Newest last activity first; sessions without timestamps sort last."""
    return sorted(
        summaries,
        key=lambda s: (s.last_timestamp is not None, s.last_timestamp or _EPOCH),
        reverse=True,
    )


def find_session(summaries: list[SessionSummary], ident: str) -> SessionSummary:
    """Find a summary by exact session id or unique id prefix."""
    found = match_id(ident, [s.session_id for s in summaries])
    if found is None:
        raise SessionNotFoundError(ident)
    return next(s for s in summaries if s.session_id == found)


def load_sessions(
    config: SweepConfig,
    cache: ScanCache | None = None,
    *,
    mode: str | None = None,
    project: str | None = None,
    analyze: bool = False,
    overrides: Mapping[str, int] | None = None,
) -> list[SessionSummary]:
    """Scan and classify all sessions using the configured locations."""
    summaries = scan(
        config.projects_dir,
        mode or config.scan_mode,
        cache,
        project=project,
        analyze=analyze,
        batch_size=config.batch_size,
        head_lines=config.head_lines,
        tail_lines=config.tail_lines,
    )
    if cache is not None:
        cache.flush()
    return classify_all(summaries, overrides)


def analyze_session(
    config: SweepConfig,
    summary: SessionSummary,
    cache: ScanCache | None = None,
    overrides: Mapping[str, int] | None = None,
) -> SessionSummary:
    """Re-read one session in full with deep analysis and reclassify it."""
    session_file = SessionFile(
        session_id=summary.session_id,
        file_path=Path(summary.file_path),
        project_slug=summary.project_slug,
    )
    deep = full_scan(session_file, analyze=True)
    if cache is not None:
        cache.put(session_file.file_path, deep)
        cache.flush()
    return classify_all([deep], overrides)[0]
