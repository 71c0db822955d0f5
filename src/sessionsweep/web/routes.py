"""Route handlers — maps API URLs to scan, classify and trash operations."""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, current_app, jsonify, request

from sessionsweep.cache import ScanCache
from sessionsweep.scan import analyze_session, find_session, load_sessions
from sessionsweep.trash import TrashJournal

bp = Blueprint("api", __name__, url_prefix="/api")


def _config():
    return current_app.config["SWEEP_CONFIG"]


def _cache() -> ScanCache:
    config = _config()
    return ScanCache(config.cache_path, prune_every=config.prune_every)


def _journal() -> TrashJournal:
    config = _config()
    return TrashJournal(config.trash_dir, config.journal_path, config.projects_dir)


def _overrides() -> dict[str, int]:
    return current_app.config["TIER_OVERRIDES"]


@bp.route("/sessions")
def sessions():
    """All sessions, optionally filtered by tier or project slug."""
    tier = request.args.get("tier", type=int)
    project = request.args.get("project")
    with _cache() as cache:
        found = load_sessions(_config(), cache, project=project, overrides=_overrides())
    if tier is not None:
        found = [s for s in found if s.tier == tier]
    return jsonify({"total": len(found), "sessions": [s.to_dict() for s in found]})


@bp.route("/sessions/<session_id>")
def session_detail(session_id):
    """Single session, deep-analyzed on first request."""
    with _cache() as cache:
        found = load_sessions(_config(), cache, overrides=_overrides())
        session = find_session(found, session_id)
        if not session.analyzed:
            session = analyze_session(_config(), session, cache, _overrides())
    return jsonify(session.to_dict())


@bp.route("/sessions/<session_id>/trash", methods=["POST"])
def trash_session(session_id):
    """Move a session to the trash."""
    with _cache() as cache:
        found = load_sessions(_config(), cache, overrides=_overrides())
    session = find_session(found, session_id)
    item = _journal().trash(session, reason="web")
    return jsonify(item.to_dict())


@bp.route("/trash")
def trash_list():
    items = _journal().list()
    return jsonify({
        "items": [i.to_dict() for i in items],
        "total_size": sum(i.size_bytes for i in items),
    })


@bp.route("/trash/<session_id>/restore", methods=["POST"])
def trash_restore(session_id):
    restored = _journal().restore(session_id)
    return jsonify({"id": session_id, "restored_to": str(restored)})


@bp.route("/trash/<session_id>", methods=["DELETE"])
def trash_purge(session_id):
    item = _journal().purge(session_id)
    return jsonify({"id": item.id, "deleted": True})


@bp.route("/trash/empty", methods=["POST"])
def trash_empty():
    """Purge trashed sessions older than `older_than_days` (0 = all)."""
    body = request.get_json(silent=True) or {}
    days = body.get("older_than_days", _config().trash_retention_days)
    if not isinstance(days, (int, float)) or isinstance(days, bool) or days < 0:
        return jsonify({"error": "older_than_days must be a non-negative number"}), 400
    result = _journal().empty_older_than(days)
    return jsonify(asdict(result))


@bp.route("/cache/stats")
def cache_stats():
    with _cache() as cache:
        stats = cache.stats()
    return jsonify(asdict(stats))
