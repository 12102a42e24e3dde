from __future__ import annotations

import importlib
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .attendance.controller import register as register_attendance
from .config import get_settings_module
from .container import Container, build_container
from .core.exceptions import AuthorizationError, ConflictError, SessionClosedError, ValidationError
from .database.bootstrap import apply_schema
from .database.connection import DBConfig, DatabaseConnection
from .reports.controller import register as register_reports


def setup_logging(app: Flask, level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s"))

    package_logger = logging.getLogger("scholar_track")
    for logger in (app.logger, package_logger):
        logger.handlers = [handler]
        logger.setLevel(level)
    package_logger.propagate = False


def register_error_handlers(app: Flask) -> None:
    def _error(message: str, status: int):
        return jsonify({"error": message}), status

    @app.errorhandler(ValidationError)
    def handle_validation(e):
        return _error(str(e), 400)

    @app.errorhandler(AuthorizationError)
    def handle_authorization(e):
        return _error(str(e), 403)

    @app.errorhandler(SessionClosedError)
    def handle_session_closed(e):
        return _error(str(e), 409)

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        app.logger.warning("Write conflict on %s %s: %s", request.method, request.path, e)
        return _error("Attendance was modified concurrently, please retry", 409)

    @app.errorhandler(HTTPException)
    def handle_http(e):
        return _error(e.description, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error("Internal server error", 500)


def create_app(container: Container | None = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    setup_logging(app, str(getattr(settings, "LOG_LEVEL", "INFO")).upper())
    register_error_handlers(app)

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        app.logger.info(
            "settings=%s db=%s@%s:%s/%s",
            settings_module, db_config.get("user"), db_config.get("host"), db_config.get("port", 3306), db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(DatabaseConnection.get_instance(DBConfig.from_dict(db_config)))

        container = build_container(
            db_config=db_config,
            policy=getattr(settings, "SESSION_EDIT_POLICY", "same_day"),
            lookback_days=int(getattr(settings, "LOOKBACK_DAYS", 30)),
            attention_threshold=float(getattr(settings, "ATTENTION_THRESHOLD", 75)),
        )

    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        return jsonify({"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()})

    register_attendance(app, container)
    register_reports(app, container)

    return app
