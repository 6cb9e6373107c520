from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .settings import settings

logger = logging.getLogger("gsw")

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    When the journal is bind-mounted into the watcher container and the host
    file does not exist yet, Docker creates a *directory* at that location.
    In that case the DB file is placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "gsw-events.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def journal_enabled() -> bool:
    return bool(settings.db_path)


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create the events table if it does not exist."""
    if not journal_enabled():
        return
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              container_id TEXT,
              upstream TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            """
        )


def _format(message: str, container_id: str | None, upstream: str | None) -> str:
    fields = []
    if container_id:
        fields.append(f"container={container_id[:12]}")
    if upstream:
        fields.append(f"upstream={upstream}")
    if not fields:
        return message
    return f"{message} [{' '.join(fields)}]"


def log_event(
    level: str,
    message: str,
    container_id: str | None = None,
    upstream: str | None = None,
    journal: bool = True,
) -> None:
    """Record an event in the process log and the event journal.

    The identifiers are passed explicitly so every line carries the
    container/upstream it concerns. Lines repeated on every pass use
    journal=False and DEBUG lines never reach the journal; the journal keeps
    at most settings.journal_max_rows rows.
    """
    level = level.upper()
    logger.log(
        _LEVELS.get(level, logging.INFO),
        _format(message, container_id, upstream),
        extra={"container_id": container_id, "upstream": upstream},
    )
    if not journal or level == "DEBUG" or not journal_enabled():
        return
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, container_id, upstream, message) VALUES (?, ?, ?, ?, ?)",
                (utc_now(), level, container_id, upstream, message),
            )
            if settings.journal_max_rows > 0:
                conn.execute(
                    "DELETE FROM events WHERE id <= (SELECT MAX(id) FROM events) - ?",
                    (settings.journal_max_rows,),
                )
    except sqlite3.Error as e:
        logger.warning("unable to write event journal: %s", e)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    if not journal_enabled():
        return []
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
