"""File manager API for the volume UI.

This blueprint exposes the endpoints under /api/files*. Every path the client
sends is a logical path relative to the volume root; resolution and all
filesystem work live in services.fileops.
"""

from __future__ import annotations

import os
from typing import Any, Dict
from urllib.parse import quote as _url_quote

from flask import Blueprint, jsonify, request, send_file

from services import fileops
from services.errors import ApiError, BadRequest, os_error_message
from services.logging_setup import log_event
from services.sandbox import normalize_root
from services.schemas import CreateEntryRequest


def error_response(message: str, status: int = 400, **extra: Any) -> Any:
    payload: Dict[str, Any] = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def api_error_response(e: ApiError) -> Any:
    return error_response(e.message, e.status, **e.extra)


def _sanitize_download_filename(name: str, *, default: str = "download") -> str:
    """Sanitize filename for Content-Disposition header (prevent header injection)."""
    s = os.path.basename((name or "").strip())
    s = s.replace("\r", "").replace("\n", "").replace('"', "")
    if not s:
        s = default
    # Keep header reasonably small.
    return s[:180]


def _content_disposition_attachment(filename: str) -> str:
    """Build a safe Content-Disposition attachment header value."""
    fn = _sanitize_download_filename(filename)
    # RFC 5987 filename* carries the UTF-8 name; the plain one stays ASCII.
    fn_ascii = fn.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fn_star = _url_quote(fn, safe="")
    return f"attachment; filename=\"{fn_ascii}\"; filename*=UTF-8''{fn_star}"


def create_files_blueprint(*, root: str, preview_max_bytes: int = fileops.PREVIEW_MAX_BYTES, max_upload_bytes: int | None = None) -> Blueprint:
    """Create /api/files* blueprint.

    Args:
        root: volume root all logical paths are confined to.
        preview_max_bytes: size limit for /api/files/content.
        max_upload_bytes: cap for /api/files/upload (None disables it).
    """

    bp = Blueprint("files", __name__)
    ROOT = normalize_root(root)

    @bp.errorhandler(ApiError)
    def _api_error(e: ApiError) -> Any:
        if e.status >= 500:
            log_event("error", "files: request failed", path=request.path, error=e.message)
        return api_error_response(e)

    @bp.errorhandler(OSError)
    def _os_error(e: OSError) -> Any:
        # Upstream filesystem failure: pass the message through as a client error.
        log_event("warning", "files: os error", path=request.path, error=os_error_message(e))
        return error_response(os_error_message(e), 400)

    @bp.errorhandler(ValueError)
    def _value_error(e: ValueError) -> Any:
        # e.g. "embedded null byte" from the os layer
        return error_response(str(e) or "invalid path", 400)

    def _required_path() -> str:
        path = request.args.get("path")
        if not path:
            raise BadRequest("path required")
        return path

    @bp.get("/api/files")
    def api_files_list() -> Any:
        path = request.args.get("path") or "/"
        listing = fileops.list_dir(ROOT, path)
        return jsonify(listing.to_dict())

    @bp.post("/api/files")
    def api_files_create() -> Any:
        req = CreateEntryRequest.from_json(request.get_json(silent=True))
        fileops.create_entry(ROOT, req.path, req.kind, req.content)
        return jsonify({"ok": True})

    @bp.delete("/api/files")
    def api_files_delete() -> Any:
        fileops.delete_entry(ROOT, _required_path())
        return jsonify({"ok": True})

    @bp.get("/api/files/download")
    def api_files_download() -> Any:
        rp, name = fileops.open_download(ROOT, _required_path())
        resp = send_file(rp, mimetype="application/octet-stream", conditional=True)
        resp.headers["Content-Disposition"] = _content_disposition_attachment(name)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @bp.post("/api/files/upload")
    def api_files_upload() -> Any:
        directory = request.form.get("path") or "/"
        f = request.files.get("file")
        if f is None or not f.filename:
            raise BadRequest("No file provided")
        fileops.save_upload(ROOT, directory, f.filename, f.stream, max_bytes=max_upload_bytes)
        return jsonify({"ok": True})

    @bp.get("/api/files/content")
    def api_files_content() -> Any:
        content = fileops.read_content(ROOT, _required_path(), max_bytes=preview_max_bytes)
        return jsonify(content.to_dict())

    return bp
