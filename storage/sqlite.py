"""SQLite helpers for the persistence layer."""
from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator


class StoreUnavailableError(RuntimeError):
    """The durable store could not be reached or was locked."""


@contextmanager
def get_conn(db_path: str) -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection, ensuring the data directory exists.

    Operational failures (missing file, locked database, disk I/O) are
    re-raised as ``StoreUnavailableError``; other database errors propagate.
    """

    directory = os.path.dirname(db_path) or "."
    try:
        os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(db_path, timeout=5.0)
    except (OSError, sqlite3.OperationalError) as exc:
        raise StoreUnavailableError(f"cannot open {db_path}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys = ON")
        yield conn
        conn.commit()
    except sqlite3.OperationalError as exc:
        raise StoreUnavailableError(str(exc)) from exc
    finally:
        conn.close()
