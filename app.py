"""Application factory for the rental ledger API."""

from __future__ import annotations

import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from sqlalchemy import event

from commands import register_commands
from config import begin_sqlite_immediate, enable_sqlite_fks, load_config
from errors import LedgerError
from extensions import csrf, db, limiter
from routes import register_blueprints
from services.auth import load_current_user

load_dotenv()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app():
    """Create and configure the Flask application."""
    app_cfg, email_cfg, ledger_cfg, db_uri = load_config()

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = db_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    if db_uri.startswith("sqlite"):
        # Request threads share the pool; writers wait for the lock.
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "connect_args": {"check_same_thread": False, "timeout": 30},
        }
    app.secret_key = app_cfg.secret_key
    app.config["APP_CONFIG"] = app_cfg
    app.config["EMAIL_CONFIG"] = email_cfg
    app.config["LEDGER_CONFIG"] = ledger_cfg
    app.config["WTF_CSRF_HEADERS"] = ["X-CSRFToken", "X-CSRF-Token"]
    # Read by Flask-Limiter at init time, so it must be set here.
    app.config["RATELIMIT_ENABLED"] = os.environ.get(
        "RATELIMIT_ENABLED", "true"
    ).lower() in ("true", "1", "yes")

    # Session security
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = (
        os.environ.get("FLASK_ENV", "") != "development"
    )
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)

    # Initialize extensions
    csrf.init_app(app)
    limiter.init_app(app)
    db.init_app(app)

    # SQLite: foreign keys on, and every transaction takes the write lock
    # up front since SELECT ... FOR UPDATE is not supported.
    if db_uri.startswith("sqlite"):
        with app.app_context():
            event.listen(db.engine, "connect", enable_sqlite_fks)
            event.listen(db.engine, "begin", begin_sqlite_immediate)

    with app.app_context():
        import models  # noqa: F401  (register tables on db.metadata)

        db.create_all()

    register_blueprints(app)
    register_commands(app)

    # ------------------------------------------------------------------
    # Request hooks
    # ------------------------------------------------------------------

    app.before_request(load_current_user)

    # ------------------------------------------------------------------
    # Security headers
    # ------------------------------------------------------------------

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )
        if os.environ.get("FLASK_ENV") == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.errorhandler(LedgerError)
    def ledger_error(error):
        if error.http_status >= 500:
            logger.error("%s: %s", error.kind, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        return jsonify({"error": error.description, "kind": "csrf"}), 400

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"error": "resource not found", "kind": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "method not allowed", "kind": "method_not_allowed"}), 405

    @app.errorhandler(429)
    def ratelimit_handler(_error):
        return jsonify({"error": "too many attempts, try again later", "kind": "rate_limited"}), 429

    @app.errorhandler(500)
    def server_error(_error):
        return jsonify({"error": "internal server error", "kind": "internal"}), 500

    return app


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "false").lower() in (
        "true",
        "1",
        "yes",
    )
    host = os.environ.get("FLASK_HOST", "127.0.0.1")
    port = int(os.environ.get("FLASK_PORT", 5000))
    logger.info("Starting application on %s:%s (debug=%s)", host, port, debug_mode)
    app.run(host=host, port=port, debug=debug_mode)
