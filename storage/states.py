"""Persistence helpers for per-candidate interview progress."""
from __future__ import annotations

import sqlite3
from typing import Optional

from domain.models import InterviewStage, InterviewState

from .sqlite import get_conn


def _row_to_state(row: sqlite3.Row) -> InterviewState:
    return InterviewState(
        candidate_key=row["candidate_key"],
        vacancy_id=row["vacancy_id"],
        stage=InterviewStage(row["stage"]),
        question_count=row["question_count"],
        started_at=row["started_at"],
        last_activity=row["last_activity"],
    )


class InterviewStateRepository:
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def save(self, state: InterviewState) -> None:
        if state.vacancy_id is None:
            return
        with get_conn(self._db_path) as conn:
            conn.execute(
                """INSERT INTO interview_states
                   (candidate_key, vacancy_id, stage, question_count, started_at, last_activity)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT (candidate_key, vacancy_id) DO UPDATE SET
                     stage = excluded.stage,
                     question_count = excluded.question_count,
                     last_activity = excluded.last_activity""",
                (
                    state.candidate_key,
                    state.vacancy_id,
                    state.stage.value,
                    state.question_count,
                    state.started_at.isoformat(),
                    state.last_activity.isoformat(),
                ),
            )

    def get(self, candidate_key: str, vacancy_id: int) -> Optional[InterviewState]:
        with get_conn(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM interview_states WHERE candidate_key = ? AND vacancy_id = ?",
                (candidate_key, vacancy_id),
            ).fetchone()
        return _row_to_state(row) if row else None

    def latest(self, candidate_key: str) -> Optional[InterviewState]:
        """Most recently active interview for ``candidate_key``."""

        with get_conn(self._db_path) as conn:
            row = conn.execute(
                """SELECT * FROM interview_states WHERE candidate_key = ?
                   ORDER BY last_activity DESC LIMIT 1""",
                (candidate_key,),
            ).fetchone()
        return _row_to_state(row) if row else None

    def delete(self, candidate_key: str, vacancy_id: Optional[int] = None) -> int:
        with get_conn(self._db_path) as conn:
            if vacancy_id is None:
                cur = conn.execute("DELETE FROM interview_states WHERE candidate_key = ?", (candidate_key,))
            else:
                cur = conn.execute(
                    "DELETE FROM interview_states WHERE candidate_key = ? AND vacancy_id = ?",
                    (candidate_key, vacancy_id),
                )
            return cur.rowcount


__all__ = ["InterviewStateRepository"]
