"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup

Responsibilities:
  1. Load configuration from config_by_name[config_name], then test overrides
  2. Configure logging levels from LOG_LEVEL
  3. Build the RecordStore and SessionStore and attach them to app.extensions
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError → JSON, Exception → 500)
"""

from __future__ import annotations

import logging
import traceback
from pathlib import Path

from flask import Flask, jsonify, request
from marshmallow import ValidationError

from secret_santa.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development", test_config: dict | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
        test_config: Optional mapping applied on top of the config class.

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    if test_config:
        app.config.update(test_config)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Stores ─────────────────────────────────────────────────────────────
    _init_stores(app)

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Applies LOG_LEVEL to the Flask logger and the secret_santa package loggers."""
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    # app.logger is "secret_santa.app"; service module loggers are its
    # children and propagate to Flask's stderr handler.
    app.logger.setLevel(level)
    logging.getLogger("secret_santa").setLevel(level)


def _init_stores(app: Flask) -> None:
    """
    Builds the record and session stores named in config and keeps them in
    app.extensions["record_store"] / app.extensions["session_store"].

    The "sql" record backend also initialises Flask-SQLAlchemy and creates
    the collection_snapshots table if it does not exist yet.
    """
    from secret_santa.app.storage.record_store import create_record_store
    from secret_santa.app.storage.session_store import create_session_store

    if app.config.get("RECORD_STORE_BACKEND") == "sql":
        from secret_santa.app.extensions import db
        # The default SQLite file lives under DATA_DIR.
        Path(app.config["DATA_DIR"]).mkdir(parents=True, exist_ok=True)
        db.init_app(app)
        with app.app_context():
            from secret_santa.app.models import collection_snapshot  # noqa: F401
            db.create_all()

    app.extensions["record_store"] = create_record_store(app.config)
    app.extensions["session_store"] = create_session_store(app.config)

    app.logger.debug(
        "Record store: %s, session store: %s",
        app.config.get("RECORD_STORE_BACKEND"),
        app.config.get("SESSION_BACKEND"),
    )


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource.
    """
    from secret_santa.app.routes.auth import auth_bp
    from secret_santa.app.routes.groups import groups_bp
    from secret_santa.app.routes.users import users_bp

    app.register_blueprint(auth_bp,   url_prefix="/api/v1/auth")
    app.register_blueprint(groups_bp, url_prefix="/api/v1/groups")
    app.register_blueprint(users_bp,  url_prefix="/api/v1/users")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors as MISSING_FIELD / INVALID_FIELD (400)
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from secret_santa.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.
        """
        if error.http_status >= 500:
            app.logger.warning("%s on %s %s: %s", error.code, request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST field error is returned ("one error, not many").
        """
        messages = error.messages  # e.g. {"name": ["Missing data for required field."]}

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = str(field_name) if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."

        if str(raw_message).startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD

        response_body = {
            "error": {
                "code": code,
                "message": raw_message,
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        HTTP exceptions raised by Flask itself (404 for unknown routes, 405)
        keep their status.
        """
        from werkzeug.exceptions import HTTPException

        if isinstance(error, HTTPException):
            return jsonify({
                "error": {
                    "code": error.name.upper().replace(" ", "_"),
                    "message": error.description,
                }
            }), error.code

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response
