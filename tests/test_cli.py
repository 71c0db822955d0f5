"""Tests for the click CLI."""

import click
import pytest
from click.testing import CliRunner

from sessionsweep.cli import cli, format_bytes, format_duration


@pytest.fixture
def populated(write_session, rec):
    return {
        "keep": write_session("keep-0001", rec.keep_session()),
        "junk": write_session("junk-0002", rec.junk_session()),
        "hook": write_session("hook-0003", rec.hook_only()),
        "snap": write_session("snap-0004", [rec.snapshot()]),
    }


@pytest.fixture
def run(config_file):
    runner = CliRunner()

    def _run(*args, input=None):
        return runner.invoke(cli, ["--config", str(config_file), *args], input=input)

    return _run


# ---------------------------------------------------------------------------
# scan / show / analyze
# ---------------------------------------------------------------------------


class TestScan:
    def test_no_sessions(self, run, projects_dir):
        result = run("scan")
        assert result.exit_code == 0
        assert f"No sessions found in {projects_dir}" in result.output

    def test_lists_sessions_with_tiers(self, run, populated):
        result = run("scan")
        assert result.exit_code == 0
        assert "keep-000" in result.output
        assert "suggested-delete" in result.output
        assert "4 sessions: 2 auto-delete, 1 suggested-delete, 0 review, 1 keep" in result.output

    def test_tier_filter(self, run, populated):
        result = run("scan", "--tier", "2")
        assert result.exit_code == 0
        assert "junk-000" in result.output
        assert "keep-000" not in result.output

    def test_invalid_tier(self, run, populated):
        assert run("scan", "--tier", "7").exit_code != 0

    def test_analyze_flag(self, run, populated, config):
        assert run("scan", "--analyze").exit_code == 0
        result = run("cache", "stats")
        assert "Entries: 4 (4 analyzed)" in result.output


class TestShow:
    def test_show(self, run, populated):
        result = run("show", "junk")
        assert result.exit_code == 0
        assert "Session:   junk-0002" in result.output
        assert "Tier:      2 (suggested-delete)" in result.output
        assert "Reasons:   single brief exchange (< 1 min)" in result.output
        assert "Duration:  5s" in result.output

    def test_not_found(self, run, populated):
        result = run("show", "nope")
        assert result.exit_code == 1
        assert "session not found: nope" in result.output

    def test_ambiguous(self, run, populated, write_session, rec):
        write_session("junk-0005", rec.junk_session())
        result = run("show", "junk")
        assert result.exit_code == 1
        assert "ambiguous" in result.output


def test_analyze(run, populated):
    result = run("analyze", "keep-0001")
    assert result.exit_code == 0
    assert "Tool calls:    3 (0 failed)" in result.output
    assert "Files touched: 2" in result.output
    assert "Auto-tags:     #files #typescript #api" in result.output
    assert "Read" in result.output


# ---------------------------------------------------------------------------
# cleanup
# ---------------------------------------------------------------------------


class TestCleanup:
    def test_dry_run(self, run, populated):
        result = run("cleanup", "--dry-run")
        assert result.exit_code == 0
        assert "Dry run: would trash 3 sessions" in result.output
        assert all(path.exists() for path in populated.values())

    def test_yes(self, run, populated):
        result = run("cleanup", "--yes")
        assert result.exit_code == 0
        assert "Trashed 2 tier 1 sessions" in result.output
        assert "Trashed 1 tier 2 sessions" in result.output
        assert populated["keep"].exists()
        assert not populated["junk"].exists()
        assert not populated["hook"].exists()

    def test_tier1_only(self, run, populated):
        result = run("cleanup", "--tier1-only", "--yes")
        assert result.exit_code == 0
        assert populated["junk"].exists()
        assert not populated["snap"].exists()

    def test_declined(self, run, populated):
        result = run("cleanup", input="n\nn\n")
        assert result.exit_code == 0
        assert all(path.exists() for path in populated.values())

    def test_nothing_to_clean(self, run, write_session, rec):
        write_session("keep-0001", rec.keep_session())
        result = run("cleanup", "--yes")
        assert "No junk sessions found." in result.output


# ---------------------------------------------------------------------------
# trash
# ---------------------------------------------------------------------------


class TestTrash:
    def test_empty_list(self, run):
        result = run("trash", "list")
        assert result.exit_code == 0
        assert "Trash is empty" in result.output

    def test_list_after_cleanup(self, run, populated):
        run("cleanup", "--yes")
        result = run("trash", "list")
        assert "3 items in trash" in result.output
        assert "junk-000" in result.output

    def test_restore(self, run, populated):
        run("cleanup", "--yes")
        result = run("trash", "restore", "junk-0002")
        assert result.exit_code == 0
        assert f"Restored junk-0002 -> {populated['junk']}" in result.output
        assert populated["junk"].exists()

    def test_restore_not_found(self, run):
        result = run("trash", "restore", "nope")
        assert result.exit_code == 1
        assert "not found: nope" in result.output

    def test_purge(self, run, populated):
        run("cleanup", "--yes")
        result = run("trash", "purge", "junk", "--yes")
        assert result.exit_code == 0
        assert "Permanently deleted junk-000" in result.output
        assert "2 items in trash" in run("trash", "list").output

    def test_purge_cancelled(self, run, populated):
        run("cleanup", "--yes")
        result = run("trash", "purge", "junk", input="n\n")
        assert "Cancelled" in result.output
        assert "3 items in trash" in run("trash", "list").output

    def test_empty_older_than_zero(self, run, populated):
        run("cleanup", "--yes")
        result = run("trash", "empty", "--older-than", "0")
        assert result.exit_code == 0
        assert "Removed 3 items, 0 remaining" in result.output

    def test_empty_default_retention(self, run, populated):
        run("cleanup", "--yes")
        result = run("trash", "empty")
        assert "Removed 0 items, 3 remaining" in result.output


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_stats_clear_prune(self, run, populated):
        run("scan")
        assert "Entries: 4 (0 analyzed)" in run("cache", "stats").output

        populated["keep"].unlink()
        assert "Pruned 1 entries" in run("cache", "prune").output

        assert "Cache cleared" in run("cache", "clear").output
        assert "Entries: 0 (0 analyzed)" in run("cache", "stats").output


# ---------------------------------------------------------------------------
# formatting
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "num,expected",
    [(0, "0 B"), (1023, "1023 B"), (1536, "1.5 KB"), (5 * 1024 * 1024, "5.0 MB")],
)
def test_format_bytes(num, expected):
    assert format_bytes(num) == expected


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0s"), (45, "45s"), (600, "10m"), (3600, "1h"), (5400, "1h 30m")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_entry_point_is_the_click_group():
    """The `sweep` script targets the group directly; there is no wrapper."""
    import sessionsweep.cli as cli_module

    assert isinstance(cli, click.Group)
    assert not hasattr(cli_module, "main")
