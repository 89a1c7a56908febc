"""Filesystem operations on the sandboxed volume.

Every function takes the (normalized) volume root explicitly and resolves the
client path through :mod:`services.sandbox` before touching the filesystem.
OS-level failures are not translated here; they propagate as ``OSError`` and
the blueprint passes their message through to the client.
"""

from __future__ import annotations

import contextlib
import locale
import os
import shutil
import stat
import time
import uuid
from typing import BinaryIO, List, Optional, Tuple

from services.errors import BadRequest, NotFound, TooLarge
from services.logging_setup import log_event
from services.sandbox import join_logical, resolve, to_logical
from services.schemas import DirectoryEntry, FileContent, Listing


PREVIEW_MAX_BYTES = 1024 * 1024  # 1 MiB
CHUNK_SIZE = 64 * 1024


def _entry_sort_key(entry: DirectoryEntry) -> Tuple[bool, str, str, str]:
    # Directories first, then case-insensitive collation; lower case wins ties.
    name = entry.name
    return (not entry.is_directory, locale.strxfrm(name.casefold()), name.swapcase(), name)


def _entry_from_dirent(dirent: os.DirEntry, now: float) -> DirectoryEntry:
    try:
        is_dir = dirent.is_dir()
    except OSError:
        is_dir = False
    try:
        st = dirent.stat()
    except OSError as e:
        log_event("debug", "fs.list: stat failed", name=dirent.name, error=e.strerror)
        return DirectoryEntry.unreadable(dirent.name, is_dir, now)
    return DirectoryEntry(
        name=dirent.name,
        is_directory=is_dir,
        size=int(st.st_size),
        modified=float(st.st_mtime),
    )


def sort_entries(entries: List[DirectoryEntry]) -> List[DirectoryEntry]:
    return sorted(entries, key=_entry_sort_key)


def list_dir(root: str, path: str) -> Listing:
    """List immediate children of ``path``.

    Children that cannot be stat'ed are still listed with size 0 and a
    modification time of "now".
    """
    rp = resolve(root, path)
    if not os.path.exists(rp):
        raise NotFound("Path not found")
    now = time.time()
    with os.scandir(rp) as it:
        entries = [_entry_from_dirent(d, now) for d in it]
    return Listing(path=path, items=sort_entries(entries))


def create_entry(root: str, path: str, kind: str, content: Optional[str] = None) -> str:
    """Create a directory (with ancestors) or write a text file.

    Files overwrite whatever is at ``path``; their missing ancestors are
    created first. Returns the physical path.
    """
    rp = resolve(root, path)
    if kind == "directory":
        os.makedirs(rp, exist_ok=True)
    elif kind == "file":
        os.makedirs(os.path.dirname(rp), exist_ok=True)
        with open(rp, "w", encoding="utf-8", newline="") as fp:
            fp.write(content or "")
    else:
        raise BadRequest("type must be 'file' or 'directory'")
    log_event("info", "fs.create", path=to_logical(root, rp), type=kind)
    return rp


def delete_entry(root: str, path: str) -> None:
    """Remove a file or link, or a directory tree recursively.

    A missing target is not special-cased: the ``FileNotFoundError`` from the
    filesystem propagates to the caller.
    """
    rp = resolve(root, path)
    if rp == root:
        raise BadRequest("refuse_delete_root")
    st = os.lstat(rp)
    if stat.S_ISDIR(st.st_mode):
        shutil.rmtree(rp)
    else:
        # Symlinks are removed themselves, never their target.
        os.unlink(rp)
    log_event("info", "fs.remove", path=to_logical(root, rp))


def read_content(root: str, path: str, max_bytes: int = PREVIEW_MAX_BYTES) -> FileContent:
    """Text preview of a file, refused without reading when over ``max_bytes``."""
    rp = resolve(root, path)
    if not os.path.exists(rp):
        raise NotFound("File not found")
    size = int(os.stat(rp).st_size)
    if size > max_bytes:
        raise TooLarge("File too large to preview", size=size)
    with open(rp, "rb") as fp:
        raw = fp.read()
    return FileContent(content=raw.decode("utf-8", errors="replace"), size=size)


def open_download(root: str, path: str) -> Tuple[str, str]:
    """Return ``(physical_path, download_name)`` for a regular file."""
    rp = resolve(root, path)
    if not os.path.exists(rp):
        raise NotFound("File not found")
    if os.path.isdir(rp):
        raise BadRequest("not_a_file")
    return rp, os.path.basename(rp) or "file"


def save_upload(
    root: str,
    directory: str,
    filename: str,
    stream: BinaryIO,
    *,
    max_bytes: Optional[int] = None,
) -> int:
    """Write ``stream`` to ``directory/filename``, overwriting.

    Unlike :func:`create_entry`, the destination directory is not created: a
    missing directory surfaces as ``FileNotFoundError``. The body is staged in
    a temp file next to the target and moved into place with ``os.replace``.
    Returns the number of bytes written.
    """
    name = os.path.basename((filename or "").replace("\\", "/"))
    if not name or name in (".", ".."):
        raise BadRequest("invalid file name")
    rp = resolve(root, join_logical(directory, name))
    if rp == root:
        raise BadRequest("invalid file name")

    tmp_path = os.path.join(os.path.dirname(rp), f".{name}.upload-{uuid.uuid4().hex[:12]}.tmp")
    total = 0
    try:
        with open(tmp_path, "wb") as out:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if max_bytes is not None and total > max_bytes:
                    raise TooLarge("Upload too large", max_mb=max_bytes // (1024 * 1024))
                out.write(chunk)
        os.replace(tmp_path, rp)
    except BaseException:
        with contextlib.suppress(OSError):
            os.remove(tmp_path)
        raise
    log_event("info", "fs.upload", path=to_logical(root, rp), bytes=total)
    return total
