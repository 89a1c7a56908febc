"""Error taxonomy shared by the file and query services.

Every error carries the HTTP status it maps to plus optional extra payload
fields; the blueprints turn them into ``{"error": ..., **extra}`` envelopes.
"""

from __future__ import annotations

from typing import Any, Dict


class ApiError(Exception):
    status = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra


class BadRequest(ApiError):
    status = 400


class PathEscape(BadRequest):
    """Logical path resolves outside the sandbox root."""

    def __init__(self) -> None:
        # Generic on purpose: never echo the resolved physical path.
        super().__init__("Path traversal detected")


class NotFound(ApiError):
    status = 404


class TooLarge(ApiError):
    status = 413


class Unconfigured(ApiError):
    status = 503

    def __init__(self, message: str = "Database not configured") -> None:
        super().__init__(message)


class UpstreamFailure(ApiError):
    """Filesystem or database failure; the upstream message is passed through."""

    status = 400

    def __init__(self, message: str, status: int | None = None, **extra: Any) -> None:
        super().__init__(message, **extra)
        if status is not None:
            self.status = status


def os_error_message(e: BaseException) -> str:
    """Compact text for OSError/ValueError coming out of the filesystem layer."""
    if isinstance(e, OSError) and e.strerror:
        if e.filename:
            return f"{e.strerror}: {e.filename}"
        return str(e.strerror)
    return str(e) or e.__class__.__name__
