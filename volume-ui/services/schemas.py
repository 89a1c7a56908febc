"""Typed request/response structures for the JSON API.

Requests are parsed with ``from_json`` at the blueprint boundary and raise
:class:`BadRequest` on malformed input; responses expose ``to_dict`` with the
wire field names the UI expects.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from services.errors import BadRequest


ENTRY_KINDS = ("file", "directory")


def iso_timestamp(ts: float) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    dt = datetime.datetime.fromtimestamp(ts, tz=datetime.timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _require_mapping(data: Any) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise BadRequest("JSON object body required")
    return data


# --------------------------- files ---------------------------


@dataclass
class DirectoryEntry:
    name: str
    is_directory: bool
    size: int
    modified: float

    @classmethod
    def unreadable(cls, name: str, is_directory: bool, now: float) -> "DirectoryEntry":
        """Fallback for children whose stat failed (broken link, EACCES)."""
        return cls(name=name, is_directory=is_directory, size=0, modified=now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "isDirectory": self.is_directory,
            "size": self.size,
            "modified": iso_timestamp(self.modified),
        }


@dataclass
class Listing:
    path: str
    items: List[DirectoryEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "items": [it.to_dict() for it in self.items]}


@dataclass
class CreateEntryRequest:
    path: str
    kind: str
    content: Optional[str] = None

    @classmethod
    def from_json(cls, data: Any) -> "CreateEntryRequest":
        body = _require_mapping(data)
        path = body.get("path")
        if not isinstance(path, str):
            raise BadRequest("path required")
        kind = body.get("type")
        if kind not in ENTRY_KINDS:
            raise BadRequest("type must be 'file' or 'directory'")
        content = body.get("content")
        if content is not None and not isinstance(content, str):
            raise BadRequest("content must be a string")
        return cls(path=path, kind=kind, content=content)


@dataclass
class FileContent:
    content: str
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "size": self.size}


# --------------------------- database ---------------------------


@dataclass
class QueryRequest:
    query: str

    @classmethod
    def from_json(cls, data: Any) -> "QueryRequest":
        body = _require_mapping(data)
        query = body.get("query")
        if not isinstance(query, str) or not query.strip():
            raise BadRequest("query required")
        return cls(query=query)


@dataclass
class QueryResult:
    columns: List[str]
    rows: List[Dict[str, Any]]
    duration: float

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "rowCount": self.row_count,
            "duration": self.duration,
        }


@dataclass
class DbStatus:
    connected: bool
    version: Optional[str] = None
    database: Optional[str] = None
    user: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"connected": self.connected}
        for key in ("version", "database", "user", "error"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


@dataclass
class TableInfo:
    name: str
    row_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "row_count": self.row_count}
