"""SQL console API routes as a Flask Blueprint.

/api/pg/query is a raw passthrough: whatever text the client posts is
executed as-is against the configured database.
"""
from __future__ import annotations

from typing import Any

import psycopg2
from flask import Blueprint, jsonify, request

from routes_files import api_error_response, error_response
from services.errors import ApiError
from services.logging_setup import log_event
from services.pg import PgConsole
from services.schemas import QueryRequest


def create_pg_blueprint(console: PgConsole) -> Blueprint:
    """Create blueprint with the database console endpoints."""
    bp = Blueprint("pg", __name__)

    @bp.errorhandler(ApiError)
    def _api_error(e: ApiError) -> Any:
        return api_error_response(e)

    @bp.get("/api/pg/status")
    def api_pg_status() -> Any:
        return jsonify(console.status().to_dict())

    @bp.get("/api/pg/tables")
    def api_pg_tables() -> Any:
        try:
            tables = console.list_tables()
        except psycopg2.Error as e:
            log_event("warning", "pg.tables failed", error=str(e).strip())
            return error_response(str(e).strip(), 500)
        return jsonify({"tables": [t.to_dict() for t in tables]})

    @bp.post("/api/pg/query")
    def api_pg_query() -> Any:
        req = QueryRequest.from_json(request.get_json(silent=True))
        try:
            result = console.run_query(req.query)
        except psycopg2.Error as e:
            log_event("info", "pg.query failed", error=str(e).strip())
            return error_response(str(e).strip(), 400)
        return jsonify(result.to_dict())

    return bp
