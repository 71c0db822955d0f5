"""Flask app factory — creates and configures the JSON API application."""

from __future__ import annotations

from collections.abc import Mapping

from flask import Flask, jsonify

from sessionsweep.config import SweepConfig
from sessionsweep.errors import AmbiguousIdError, NotFoundError


def create_app(config: SweepConfig, overrides: Mapping[str, int] | None = None) -> Flask:
    """Create the Flask app with config values and registered routes.

    Args:
        config: SweepConfig with projects_dir, data_dir, etc.
        overrides: Optional per-session tier overrides, keyed by session id.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    app.config["SWEEP_CONFIG"] = config
    app.config["TIER_OVERRIDES"] = dict(overrides or {})

    from sessionsweep.web.routes import bp

    app.register_blueprint(bp)

    @app.errorhandler(NotFoundError)
    def not_found(e):
        return jsonify({"error": str(e), "id": e.ident}), 404

    @app.errorhandler(AmbiguousIdError)
    def ambiguous(e):
        return jsonify({"error": str(e), "id": e.ident}), 400

    @app.errorhandler(FileNotFoundError)
    def missing_file(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(FileExistsError)
    def conflict(e):
        return jsonify({"error": str(e)}), 409

    return app
