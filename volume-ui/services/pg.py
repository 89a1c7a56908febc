"""PostgreSQL query console (raw passthrough).

Only active when a DSN is configured. One connection is shared by all
requests; it is opened lazily, runs in autocommit mode and is reopened when
the driver reports it closed. Statement execution is serialized with a lock.

``run_query`` executes caller-supplied SQL verbatim, destructive statements
included. There is no parsing, whitelisting or parameterization.
"""

from __future__ import annotations

import datetime
import decimal
import math
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import psycopg2
import psycopg2.extras

from services.errors import Unconfigured
from services.logging_setup import log_event
from services.schemas import DbStatus, QueryResult, TableInfo


STATUS_SQL = 'SELECT version() AS version, current_database() AS "database", current_user AS "user"'

TABLES_SQL = """
    SELECT relname AS name, n_live_tup AS row_count
    FROM pg_stat_user_tables
    WHERE schemaname = 'public'
    ORDER BY relname
"""


def jsonable(value: Any) -> Any:
    """Convert driver values that JSON cannot carry as-is."""
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (datetime.timedelta, uuid.UUID)):
        return str(value)
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return str(value)


class PgConsole:
    def __init__(
        self,
        dsn: Optional[str],
        *,
        connect: Callable[..., Any] = psycopg2.connect,
    ) -> None:
        self.dsn = dsn or None
        self._connect = connect
        self._conn: Any = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self.dsn is not None

    def _require_configured(self) -> None:
        if not self.configured:
            raise Unconfigured()

    def _connection(self) -> Any:
        # Caller holds self._lock.
        if self._conn is None or self._conn.closed:
            self._conn = self._connect(self.dsn)
            self._conn.autocommit = True
            log_event("info", "pg.connect")
        return self._conn

    def _execute(self, sql: str) -> List[Dict[str, Any]]:
        with self._lock:
            conn = self._connection()
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(sql)
                if cur.description is None:
                    return []
                return [dict(row) for row in cur.fetchall()]

    def status(self) -> DbStatus:
        """Round-trip check. Never raises."""
        if not self.configured:
            return DbStatus(connected=False, error="not configured")
        try:
            rows = self._execute(STATUS_SQL)
        except Exception as e:  # noqa: BLE001 - status reports any failure
            log_event("warning", "pg.status failed", error=str(e).strip())
            return DbStatus(connected=False, error=str(e).strip())
        row = rows[0] if rows else {}
        return DbStatus(
            connected=True,
            version=row.get("version"),
            database=row.get("database"),
            user=row.get("user"),
        )

    def list_tables(self) -> List[TableInfo]:
        """Tables in ``public`` with approximate live-row counts from statistics."""
        self._require_configured()
        rows = self._execute(TABLES_SQL)
        return [TableInfo(name=r["name"], row_count=int(r["row_count"] or 0)) for r in rows]

    def run_query(self, text: str) -> QueryResult:
        self._require_configured()
        t0 = time.perf_counter()
        rows = self._execute(text)
        duration = round((time.perf_counter() - t0) * 1000.0, 2)
        out_rows = [{str(k): jsonable(v) for k, v in row.items()} for row in rows]
        columns = list(out_rows[0].keys()) if out_rows else []
        log_event("info", "pg.query", rows=len(out_rows), ms=duration)
        return QueryResult(columns=columns, rows=out_rows, duration=duration)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None and not self._conn.closed:
                self._conn.close()
            self._conn = None
