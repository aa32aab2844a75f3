"""Persistence helpers for candidate identities."""
from __future__ import annotations

import sqlite3
from typing import Optional

from domain.models import Candidate, utcnow

from .sqlite import get_conn


def _row_to_candidate(row: sqlite3.Row) -> Candidate:
    return Candidate(
        external_id=row["external_id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        username=row["username"],
        created_at=row["created_at"],
    )


class CandidateRepository:  # SQLite-backed candidate identities keyed by external user id
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def get(self, external_id: str) -> Optional[Candidate]:
        with get_conn(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM candidates WHERE external_id = ?",
                (external_id,),
            ).fetchone()
        return _row_to_candidate(row) if row else None

    def find_or_create(
        self,
        external_id: str,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Candidate:
        """Create the candidate once; fill display-name fields that are still empty."""

        now = utcnow().isoformat()
        with get_conn(self._db_path) as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO candidates (external_id, first_name, last_name, username, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (external_id, first_name, last_name, username, now),
            )
            conn.execute(
                """
                UPDATE candidates
                SET first_name = COALESCE(first_name, ?),
                    last_name = COALESCE(last_name, ?),
                    username = COALESCE(username, ?)
                WHERE external_id = ?
                """,
                (first_name, last_name, username, external_id),
            )
            row = conn.execute(
                "SELECT * FROM candidates WHERE external_id = ?",
                (external_id,),
            ).fetchone()
        return _row_to_candidate(row)


__all__ = ["CandidateRepository"]
