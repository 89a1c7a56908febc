#!/usr/bin/env python3
"""Serve volume-ui with gevent's WSGI server.

Each request runs in its own greenlet. psycopg2 is switched to gevent-aware
waiting so a slow query does not stall other requests.
"""
from gevent import monkey

monkey.patch_all()

import locale  # noqa: E402
import signal  # noqa: E402

import gevent  # noqa: E402
import psycopg2  # noqa: E402
from gevent import pywsgi  # noqa: E402
from gevent.socket import wait_read, wait_write  # noqa: E402
from psycopg2 import extensions  # noqa: E402

from app import create_app  # noqa: E402
from services.logging_setup import log_event, setup_logging  # noqa: E402
from services.settings import load_settings  # noqa: E402


def _gevent_wait_callback(conn, timeout=None):
    """Let psycopg2 yield to the gevent hub while waiting on the socket."""
    while True:
        state = conn.poll()
        if state == extensions.POLL_OK:
            break
        elif state == extensions.POLL_READ:
            wait_read(conn.fileno(), timeout=timeout)
        elif state == extensions.POLL_WRITE:
            wait_write(conn.fileno(), timeout=timeout)
        else:
            raise psycopg2.OperationalError(f"Bad result from poll: {state!r}")


def _set_collation_locale() -> None:
    # Directory listings sort names with locale.strxfrm.
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        log_event("warning", "locale: falling back to C collation", error=str(e))


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_dir)
    _set_collation_locale()
    extensions.set_wait_callback(_gevent_wait_callback)

    app = create_app(settings)
    console = app.extensions["volui.pg"]

    server = pywsgi.WSGIServer((settings.host, settings.port), app)

    def _shutdown():
        log_event("info", "server stopping")
        server.stop(timeout=5)

    gevent.signal_handler(signal.SIGTERM, _shutdown)
    gevent.signal_handler(signal.SIGINT, _shutdown)

    log_event("info", "server running", host=settings.host, port=settings.port, root=settings.root)
    try:
        server.serve_forever()
    finally:
        console.close()


if __name__ == "__main__":
    main()
