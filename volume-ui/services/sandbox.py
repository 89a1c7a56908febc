"""Path sandbox: map client-supplied logical paths onto the volume root.

Logical paths are ``/``-separated and relative to the root, whatever their
leading slashes say. Resolution is purely lexical: ``.``/``..`` segments are
collapsed first, then containment is checked with ``os.path.commonpath`` so
that ``/data2`` is never mistaken for a child of ``/data``.
"""

from __future__ import annotations

import os

from services.errors import PathEscape


def normalize_root(root: str) -> str:
    """Absolute, normalized form of ``root`` (symlinks are not resolved)."""
    return os.path.normpath(os.path.abspath(root))


def is_within(path: str, root: str) -> bool:
    """True when normalized ``path`` is ``root`` or lies beneath it."""
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        # Mixed absolute/relative or different drives.
        return False


def resolve(root: str, logical_path: str | None) -> str:
    """Resolve ``logical_path`` to a physical path confined to ``root``.

    ``root`` must already be normalized (see :func:`normalize_root`).
    Raises :class:`PathEscape` when the result would lie outside it.
    """
    cleaned = (logical_path or "").lstrip("/")
    physical = os.path.normpath(os.path.join(root, cleaned))
    if not is_within(physical, root):
        raise PathEscape()
    return physical


def to_logical(root: str, physical: str) -> str:
    """Inverse of :func:`resolve`: ``/``-prefixed path relative to ``root``."""
    rel = os.path.relpath(physical, root)
    if rel == os.curdir:
        return "/"
    return "/" + rel.replace(os.sep, "/")


def join_logical(directory: str | None, name: str) -> str:
    d = (directory or "/").rstrip("/")
    return f"{d}/{name}"
