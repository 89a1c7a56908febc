"""volume-ui Flask application.

``create_app`` wires the file manager and SQL console blueprints around a
single :class:`Settings` instance; nothing here reads the environment except
through :func:`services.settings.load_settings`.
"""

from __future__ import annotations

import os
import time
from typing import Any, Dict, Optional

from flask import Flask, g, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

from routes_files import create_files_blueprint
from routes_pg import create_pg_blueprint
from services.logging_setup import access_enabled, access_logger, core_logger, log_event
from services.pg import PgConsole
from services.sandbox import normalize_root
from services.settings import Settings, load_settings


def api_error(message: str, status: int = 400):
    """Return a JSON error response in a consistent format."""
    payload: Dict[str, Any] = {"error": message}
    return jsonify(payload), status


def _is_api_request() -> bool:
    return (request.path or "").startswith("/api/")


def _register_access_log(app: Flask) -> None:
    @app.before_request
    def _access_log_before_request():
        g._volui_t0 = time.time()
        return None

    @app.after_request
    def _access_log_after_request(response):
        try:
            if not access_enabled():
                return response
            path = request.path or ""
            if path.startswith("/static/"):
                return response
            client = request.headers.get("X-Forwarded-For") or request.remote_addr or ""
            status = getattr(response, "status_code", 0) or 0
            t0 = getattr(g, "_volui_t0", None)
            if t0:
                dt_ms = int((time.time() - float(t0)) * 1000.0)
                line = f"{client} {request.method} {path} -> {status} ({dt_ms}ms)"
            else:
                line = f"{client} {request.method} {path} -> {status}"
            access_logger().info(line)
        except Exception:  # noqa: BLE001
            # Logging must never affect response
            pass
        return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        if not _is_api_request():
            return e
        return api_error(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unhandled_error(e: Exception):
        core_logger().exception("unhandled error on %s", request.path)
        if _is_api_request():
            return api_error(str(e) or "internal error", 500)
        return "internal error", 500


def create_app(settings: Optional[Settings] = None, *, console: Optional[PgConsole] = None) -> Flask:
    """Build the Flask app.

    ``console`` may be injected (tests); otherwise one is created from
    ``settings.database_url`` and stored in ``app.extensions["volui.pg"]``.
    """
    if settings is None:
        settings = load_settings()

    root = normalize_root(settings.root)
    os.makedirs(root, exist_ok=True)

    app = Flask(__name__, static_folder="static", template_folder="templates")
    app.json.sort_keys = False

    if console is None:
        console = PgConsole(settings.database_url)
    app.extensions["volui.pg"] = console

    _register_access_log(app)
    _register_error_handlers(app)

    app.register_blueprint(
        create_files_blueprint(
            root=root,
            preview_max_bytes=settings.preview_max_bytes,
            max_upload_bytes=settings.max_upload_bytes,
        )
    )
    app.register_blueprint(create_pg_blueprint(console))

    @app.get("/")
    def index():
        return render_template("index.html", db_enabled=console.configured)

    log_event("info", "app created", root=root, db=bool(console.configured))
    return app
