"""Process-wide configuration, read once from the environment at startup.

The resulting :class:`Settings` is passed explicitly into blueprint factories
and the query console; request handlers never read ``os.environ``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_PORT = 3000
DEFAULT_PREVIEW_MAX_BYTES = 1024 * 1024  # 1 MiB


@dataclass(frozen=True)
class Settings:
    root: str
    database_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    preview_max_bytes: int = DEFAULT_PREVIEW_MAX_BYTES
    max_upload_mb: int = 0
    log_dir: Optional[str] = None

    @property
    def max_upload_bytes(self) -> Optional[int]:
        if self.max_upload_mb > 0:
            return self.max_upload_mb * 1024 * 1024
        return None


def _env_str(env: Mapping[str, str], name: str, default: str = "") -> str:
    return str(env.get(name, "") or "").strip() or default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    v = str(env.get(name, "") or "").strip()
    if not v:
        return default
    try:
        return int(float(v))
    except ValueError:
        return default


def default_root(env: Mapping[str, str]) -> str:
    if _env_str(env, "VOLUI_ENV").lower() == "production":
        return "/data"
    return "./data"


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``)."""
    if env is None:
        env = os.environ
    root = _env_str(env, "VOLUME_PATH") or default_root(env)
    return Settings(
        root=os.path.abspath(root),
        database_url=_env_str(env, "DATABASE_URL") or None,
        host=_env_str(env, "VOLUI_HOST", "0.0.0.0"),
        port=_env_int(env, "VOLUI_PORT", DEFAULT_PORT),
        preview_max_bytes=max(0, _env_int(env, "VOLUI_PREVIEW_MAX_BYTES", DEFAULT_PREVIEW_MAX_BYTES)),
        max_upload_mb=max(0, _env_int(env, "VOLUI_MAX_UPLOAD_MB", 0)),
        log_dir=_env_str(env, "VOLUI_LOG_DIR") or None,
    )
