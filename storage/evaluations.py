"""Persistence helpers for interview evaluations."""
from __future__ import annotations

import json
import sqlite3
from typing import List, Optional

from domain.models import AnalysisData, Evaluation, utcnow

from .sqlite import get_conn


def _row_to_evaluation(row: sqlite3.Row) -> Evaluation:
    return Evaluation(
        id=row["id"],
        candidate_key=row["candidate_key"],
        vacancy_id=row["vacancy_id"],
        overall_score=row["overall_score"],
        technical_score=row["technical_score"],
        communication_score=row["communication_score"],
        problem_solving_score=row["problem_solving_score"],
        strengths=json.loads(row["strengths"]),
        gaps=json.loads(row["gaps"]),
        contradictions=json.loads(row["contradictions"]),
        recommendation=row["recommendation"],
        feedback=row["feedback"],
        analysis_data=AnalysisData.model_validate_json(row["analysis_data"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class EvaluationRepository:  # SQLite-backed evaluations, one row per (candidate, vacancy)
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def upsert(self, evaluation: Evaluation) -> Evaluation:
        """Insert or replace the scoring fields in one statement.

        ``id`` and ``created_at`` of an existing row are retained.
        """

        now = utcnow().isoformat()
        with get_conn(self._db_path) as conn:
            conn.execute(
                """INSERT INTO evaluations
                   (candidate_key, vacancy_id, overall_score, technical_score, communication_score,
                    problem_solving_score, strengths, gaps, contradictions, recommendation, feedback,
                    analysis_data, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (candidate_key, vacancy_id) DO UPDATE SET
                     overall_score = excluded.overall_score,
                     technical_score = excluded.technical_score,
                     communication_score = excluded.communication_score,
                     problem_solving_score = excluded.problem_solving_score,
                     strengths = excluded.strengths,
                     gaps = excluded.gaps,
                     contradictions = excluded.contradictions,
                     recommendation = excluded.recommendation,
                     feedback = excluded.feedback,
                     analysis_data = excluded.analysis_data,
                     updated_at = excluded.updated_at""",
                (
                    evaluation.candidate_key,
                    evaluation.vacancy_id,
                    evaluation.overall_score,
                    evaluation.technical_score,
                    evaluation.communication_score,
                    evaluation.problem_solving_score,
                    json.dumps(evaluation.strengths, ensure_ascii=False),
                    json.dumps(evaluation.gaps, ensure_ascii=False),
                    json.dumps(evaluation.contradictions, ensure_ascii=False),
                    evaluation.recommendation,
                    evaluation.feedback,
                    evaluation.analysis_data.model_dump_json(),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT * FROM evaluations WHERE candidate_key = ? AND vacancy_id = ?",
                (evaluation.candidate_key, evaluation.vacancy_id),
            ).fetchone()
        return _row_to_evaluation(row)

    def find(self, candidate_key: str, vacancy_id: int) -> Optional[Evaluation]:
        with get_conn(self._db_path) as conn:
            row = conn.execute(
                "SELECT * FROM evaluations WHERE candidate_key = ? AND vacancy_id = ?",
                (candidate_key, vacancy_id),
            ).fetchone()
        return _row_to_evaluation(row) if row else None

    def list_for_candidate(self, candidate_key: str) -> List[Evaluation]:
        with get_conn(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM evaluations WHERE candidate_key = ? ORDER BY created_at DESC",
                (candidate_key,),
            ).fetchall()
        return [_row_to_evaluation(row) for row in rows]


__all__ = ["EvaluationRepository"]
