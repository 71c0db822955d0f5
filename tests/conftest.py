"""Shared test fixtures for sessionsweep tests."""

import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from sessionsweep.cache import ScanCache
from sessionsweep.config import load_config
from sessionsweep.trash import TrashJournal

PROJECT_SLUG = "-Users-dev-projects-webapp"
BASE_TIME = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


def ts(seconds=0):
    """ISO timestamp `seconds` after BASE_TIME, in the log's Z-suffixed form."""
    return (BASE_TIME + timedelta(seconds=seconds)).isoformat().replace("+00:00", "Z")


def user_record(text, t=0, **extra):
    return {
        "type": "user",
        "timestamp": ts(t),
        "message": {"role": "user", "content": text},
        **extra,
    }


def assistant_record(text="", t=0, tools=(), thinking=None, model="claude-sonnet-4-6", usage=None):
    """Assistant record; `tools` is a sequence of (id, name, input) tuples."""
    content = []
    if thinking:
        content.append({"type": "thinking", "thinking": thinking})
    if text:
        content.append({"type": "text", "text": text})
    for tool_id, name, tool_input in tools:
        content.append({"type": "tool_use", "id": tool_id, "name": name, "input": tool_input})
    return {
        "type": "assistant",
        "timestamp": ts(t),
        "message": {
            "role": "assistant",
            "model": model,
            "content": content,
            "usage": usage or {"input_tokens": 100, "output_tokens": 50},
        },
    }


def tool_result_record(tool_use_id, t=0, is_error=False):
    return {
        "type": "user",
        "timestamp": ts(t),
        "message": {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": tool_use_id, "is_error": is_error, "content": "ok"},
            ],
        },
    }


def progress_record(kind="hook_progress", t=0):
    return {"type": "progress", "timestamp": ts(t), "data": {"type": kind}}


def snapshot_record():
    return {"type": "file-history-snapshot", "snapshot": {"trackedFileBackups": {}}}


def keep_session_records():
    """A real working session: long, several exchanges, tool use."""
    return [
        snapshot_record(),
        user_record("Add pagination to the users API endpoint", t=0, gitBranch="main", cwd="/Users/dev/projects/webapp"),
        assistant_record(
            "Reading the route first.", t=10,
            tools=[("toolu_1", "Read", {"file_path": "src/routes/users.ts"})],
        ),
        tool_result_record("toolu_1", t=12),
        assistant_record(
            "Adding limit and offset.", t=30,
            tools=[("toolu_2", "Edit", {"file_path": "src/routes/users.ts"})],
        ),
        tool_result_record("toolu_2", t=32),
        user_record("Now add tests for it", t=120),
        assistant_record(
            "Writing tests.", t=150,
            tools=[("toolu_3", "Write", {"file_path": "tests/users.test.ts"})],
        ),
        tool_result_record("toolu_3", t=152),
        user_record("Looks good, thanks", t=600),
        assistant_record("You're welcome.", t=610),
    ]


def junk_session_records():
    """A throwaway session: a single /init and a short reply."""
    return [
        user_record("/init", t=0),
        assistant_record("Initialized.", t=5),
    ]


def hook_only_records():
    return [progress_record("hook_progress", t=0), progress_record("hook_progress", t=1)]


@pytest.fixture
def rec():
    """Builders for raw session log records."""
    return SimpleNamespace(
        ts=ts,
        user=user_record,
        assistant=assistant_record,
        tool_result=tool_result_record,
        progress=progress_record,
        snapshot=snapshot_record,
        keep_session=keep_session_records,
        junk_session=junk_session_records,
        hook_only=hook_only_records,
    )


@pytest.fixture
def projects_dir(tmp_path):
    """Empty projects root, laid out like the chat tool's."""
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def write_session(projects_dir):
    """Write a session log; records may be dicts or raw strings (for malformed lines)."""

    def _write(session_id, records, project=PROJECT_SLUG):
        project_dir = projects_dir / project
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / f"{session_id}.jsonl"
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config_file(tmp_path, projects_dir):
    """Config YAML pointing every location into tmp_path."""
    path = tmp_path / "config.yaml"
    path.write_text(
        f"projects_dir: {projects_dir}\n"
        f"data_dir: {tmp_path / 'data'}\n"
    )
    return path


@pytest.fixture
def config(config_file):
    return load_config(config_path=config_file)


@pytest.fixture
def journal(config):
    return TrashJournal(config.trash_dir, config.journal_path, config.projects_dir)


@pytest.fixture
def cache_path(tmp_path):
    """Path to a temporary scan cache database."""
    return tmp_path / "cache" / "cache.db"


@pytest.fixture
def cache(cache_path):
    with ScanCache(cache_path) as c:
        yield c
