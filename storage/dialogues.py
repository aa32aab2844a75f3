"""Persistence helpers for the append-only dialogue log."""
from __future__ import annotations

import sqlite3
from typing import List, Optional

from domain.models import Attachment, DialogueEntry

from .sqlite import get_conn


def _row_to_entry(row: sqlite3.Row) -> DialogueEntry:
    attachment = row["attachment"]
    return DialogueEntry(
        entry_id=row["entry_id"],
        candidate_key=row["candidate_key"],
        vacancy_id=row["vacancy_id"],
        message_type=row["message_type"],
        sender=row["sender"],
        content=row["content"],
        transcription=row["transcription"],
        attachment=Attachment.model_validate_json(attachment) if attachment else None,
        created_at=row["created_at"],
    )


class DialogueRepository:  # SQLite-backed dialogue log
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def insert(self, entry: DialogueEntry) -> int:
        """Insert one entry; re-inserting the same ``entry_id`` is a no-op."""

        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                """INSERT OR IGNORE INTO dialogues
                   (entry_id, candidate_key, vacancy_id, message_type, sender,
                    content, transcription, attachment, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.entry_id,
                    entry.candidate_key,
                    entry.vacancy_id,
                    entry.message_type,
                    entry.sender,
                    entry.content,
                    entry.transcription,
                    entry.attachment.model_dump_json() if entry.attachment else None,
                    entry.created_at.isoformat(timespec="microseconds"),
                ),
            )
            return int(cur.lastrowid or 0)

    def list_entries(
        self,
        candidate_key: str,
        vacancy_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[DialogueEntry]:
        """Return entries oldest first, keeping only the newest ``limit`` rows."""

        clauses = ["candidate_key = ?"]
        params: list = [candidate_key]
        if vacancy_id is not None:
            clauses.append("vacancy_id = ?")
            params.append(vacancy_id)
        sql = f"SELECT * FROM dialogues WHERE {' AND '.join(clauses)} ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(max(limit, 0))
        with get_conn(self._db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_entry(row) for row in reversed(rows)]

    def delete(self, candidate_key: str, vacancy_id: Optional[int] = None) -> int:
        with get_conn(self._db_path) as conn:
            if vacancy_id is None:
                cur = conn.execute("DELETE FROM dialogues WHERE candidate_key = ?", (candidate_key,))
            else:
                cur = conn.execute(
                    "DELETE FROM dialogues WHERE candidate_key = ? AND vacancy_id = ?",
                    (candidate_key, vacancy_id),
                )
            return cur.rowcount


__all__ = ["DialogueRepository"]
