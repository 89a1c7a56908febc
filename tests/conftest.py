from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from app import create_app
from services.pg import PgConsole
from services.sandbox import normalize_root
from services.settings import Settings


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self.description: Optional[list] = None
        self._rows: List[Dict[str, Any]] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def execute(self, sql: str, params: Any = None) -> None:
        self.conn.executed.append(sql)
        rows = self.conn.responder(sql)
        if rows is None:
            self.description = None
            self._rows = []
        else:
            self.description = [(k,) for k in (rows[0].keys() if rows else [])]
            self._rows = rows

    def fetchall(self) -> List[Dict[str, Any]]:
        return list(self._rows)


class FakeConnection:
    """Stands in for a psycopg2 connection; ``responder(sql)`` returns rows,
    ``None`` for statements without a result set, or raises."""

    def __init__(self, responder: Callable[[str], Optional[List[Dict[str, Any]]]]) -> None:
        self.responder = responder
        self.executed: List[str] = []
        self.cursor_factories: List[Any] = []
        self.autocommit = False
        self.closed = 0

    def cursor(self, cursor_factory: Any = None) -> FakeCursor:
        self.cursor_factories.append(cursor_factory)
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = 1


class FakeConnector:
    def __init__(self, responder: Callable[[str], Optional[List[Dict[str, Any]]]]) -> None:
        self.responder = responder
        self.calls: List[str] = []
        self.connections: List[FakeConnection] = []

    def __call__(self, dsn: str) -> FakeConnection:
        self.calls.append(dsn)
        conn = FakeConnection(self.responder)
        self.connections.append(conn)
        return conn


def refuse_connect(dsn: str) -> Any:
    raise AssertionError("no connection must be attempted")


@pytest.fixture
def root(tmp_path: Path) -> str:
    data = tmp_path / "data"
    data.mkdir()
    return normalize_root(str(data))


@pytest.fixture
def settings(root: str) -> Settings:
    return Settings(root=root)


@pytest.fixture
def app(settings: Settings):
    flask_app = create_app(settings, console=PgConsole(None, connect=refuse_connect))
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
