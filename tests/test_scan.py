"""Tests for scan orchestration — caching, concurrency batches, lookup and classification."""

import logging
from datetime import datetime, timezone

import pytest

import sessionsweep.scan as scan_module
from sessionsweep.cache import ScanCache
from sessionsweep.errors import AmbiguousIdError, SessionNotFoundError
from sessionsweep.models import MODE_FAST, MODE_FULL, SessionSummary, Tier
from sessionsweep.scan import (
    analyze_session,
    find_session,
    load_sessions,
    scan,
    sort_by_last_activity,
)


@pytest.fixture
def populated(write_session, rec):
    """Four sessions covering keep, suggested and auto-delete."""
    write_session("keep-0001", rec.keep_session())
    write_session("junk-0002", rec.junk_session())
    write_session("hook-0003", rec.hook_only())
    write_session("snap-0004", [rec.snapshot()])


def _fail(*args, **kwargs):
    raise AssertionError("file should have been served from the cache")


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------


class TestScan:
    def test_sorted_by_last_activity(self, projects_dir, populated):
        summaries = scan(projects_dir)
        assert [s.session_id for s in summaries] == ["keep-0001", "junk-0002", "hook-0003", "snap-0004"]
        assert summaries[-1].last_timestamp is None

    def test_fast_mode_by_default(self, projects_dir, populated):
        assert {s.scan_mode for s in scan(projects_dir)} == {MODE_FAST}

    def test_full_mode(self, projects_dir, populated):
        summaries = scan(projects_dir, MODE_FULL)
        assert {s.scan_mode for s in summaries} == {MODE_FULL}
        assert not any(s.analyzed for s in summaries)

    def test_analyze_implies_full(self, projects_dir, populated):
        summaries = scan(projects_dir, MODE_FAST, analyze=True)
        assert all(s.analyzed and s.scan_mode == MODE_FULL for s in summaries)

    def test_unknown_mode(self, projects_dir):
        with pytest.raises(ValueError):
            scan(projects_dir, "partial")

    def test_small_batches(self, projects_dir, populated):
        assert len(scan(projects_dir, batch_size=1)) == 4

    def test_project_filter(self, projects_dir, populated, write_session, rec):
        write_session("elsewhere", rec.keep_session(), project="-Users-dev-other")
        summaries = scan(projects_dir, project="-Users-dev-other")
        assert [s.session_id for s in summaries] == ["elsewhere"]

    def test_empty_root(self, tmp_path):
        assert scan(tmp_path / "missing") == []

    def test_unreadable_file_skipped(self, projects_dir, populated, monkeypatch, caplog):
        real_fast_scan = scan_module.fast_scan

        def flaky(session_file, *args):
            if session_file.session_id == "junk-0002":
                raise PermissionError("denied")
            return real_fast_scan(session_file, *args)

        monkeypatch.setattr(scan_module, "fast_scan", flaky)
        with caplog.at_level(logging.WARNING, logger="sessionsweep.scan"):
            summaries = scan(projects_dir)
        assert "junk-0002" not in [s.session_id for s in summaries]
        assert len(summaries) == 3
        assert "Skipping unreadable session" in caplog.text


class TestScanCache:
    def test_second_scan_served_from_cache(self, projects_dir, populated, cache, monkeypatch):
        first = scan(projects_dir, cache=cache)
        monkeypatch.setattr(scan_module, "fast_scan", _fail)
        monkeypatch.setattr(scan_module, "full_scan", _fail)
        second = scan(projects_dir, cache=cache)
        assert [s.to_dict() for s in second] == [s.to_dict() for s in first]

    def test_changed_file_rescanned(self, projects_dir, populated, cache, write_session, rec):
        scan(projects_dir, cache=cache)
        write_session("junk-0002", rec.keep_session())
        summaries = {s.session_id: s for s in scan(projects_dir, cache=cache)}
        assert summaries["junk-0002"].title == "Add pagination to the users API endpoint"

    def test_fast_cache_does_not_satisfy_full(self, projects_dir, populated, cache):
        scan(projects_dir, MODE_FAST, cache=cache)
        summaries = scan(projects_dir, MODE_FULL, cache=cache)
        assert {s.scan_mode for s in summaries} == {MODE_FULL}

    def test_full_cache_satisfies_fast(self, projects_dir, populated, cache, monkeypatch):
        scan(projects_dir, MODE_FULL, cache=cache)
        monkeypatch.setattr(scan_module, "fast_scan", _fail)
        assert len(scan(projects_dir, MODE_FAST, cache=cache)) == 4

    def test_analyze_requires_analyzed_entries(self, projects_dir, populated, cache, monkeypatch):
        scan(projects_dir, MODE_FULL, cache=cache)
        summaries = scan(projects_dir, analyze=True, cache=cache)
        assert all(s.analyzed for s in summaries)

        monkeypatch.setattr(scan_module, "full_scan", _fail)
        again = scan(projects_dir, analyze=True, cache=cache)
        assert all(s.analyzed for s in again)


# ---------------------------------------------------------------------------
# Lookup and ordering
# ---------------------------------------------------------------------------


def _bare(session_id, last=None):
    return SessionSummary(session_id=session_id, file_path=f"/fake/{session_id}.jsonl", last_timestamp=last)


def test_sort_puts_missing_timestamps_last():
    older = _bare("older", datetime(2026, 1, 1, tzinfo=timezone.utc))
    newer = _bare("newer", datetime(2026, 2, 1, tzinfo=timezone.utc))
    undated = _bare("undated")
    assert [s.session_id for s in sort_by_last_activity([undated, older, newer])] == [
        "newer", "older", "undated",
    ]


class TestFindSession:
    summaries = [_bare("abc-123"), _bare("abd-456"), _bare("abc")]

    def test_exact_match_wins(self):
        assert find_session(self.summaries, "abc").session_id == "abc"

    def test_unique_prefix(self):
        assert find_session(self.summaries, "abd").session_id == "abd-456"

    def test_ambiguous_prefix(self):
        with pytest.raises(AmbiguousIdError):
            find_session(self.summaries, "ab")

    def test_not_found(self):
        with pytest.raises(SessionNotFoundError) as exc_info:
            find_session(self.summaries, "zzz")
        assert "zzz" in str(exc_info.value)


# ---------------------------------------------------------------------------
# load_sessions / analyze_session
# ---------------------------------------------------------------------------


class TestLoadSessions:
    def test_classifies(self, config, populated):
        with ScanCache(config.cache_path) as cache:
            sessions = {s.session_id: s for s in load_sessions(config, cache)}
        assert sessions["keep-0001"].tier == Tier.KEEP
        assert sessions["junk-0002"].tier == Tier.SUGGESTED
        assert sessions["junk-0002"].reasons == ["single brief exchange (< 1 min)"]
        assert sessions["hook-0003"].tier == Tier.AUTO_DELETE
        assert sessions["snap-0004"].tier == Tier.AUTO_DELETE

    def test_flushes_cache(self, config, populated):
        with ScanCache(config.cache_path) as cache:
            load_sessions(config, cache)
            assert cache.flush() is False
        assert config.cache_path.exists()

    def test_overrides(self, config, populated):
        sessions = {s.session_id: s for s in load_sessions(config, overrides={"keep-0001": 1})}
        assert sessions["keep-0001"].tier == Tier.AUTO_DELETE
        assert sessions["keep-0001"].auto_tier == Tier.KEEP

    def test_analyze_session(self, config, populated):
        with ScanCache(config.cache_path) as cache:
            sessions = load_sessions(config, cache)
            junk = find_session(sessions, "junk")
            assert not junk.analyzed

            deep = analyze_session(config, junk, cache)
            assert deep.analyzed
            assert deep.enrichment.turn_count == 2
            assert deep.tier == Tier.SUGGESTED
            assert cache.get(junk.file_path, require_analyzed=True) is not None
