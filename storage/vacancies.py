"""Persistence helpers for vacancies."""
from __future__ import annotations

import sqlite3
from typing import List, Optional

from domain.models import EvaluationWeights, Requirements, Vacancy, utcnow

from .sqlite import get_conn


def _row_to_vacancy(row: sqlite3.Row) -> Vacancy:
    return Vacancy(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        requirements=Requirements.model_validate_json(row["requirements"]),
        evaluation_weights=EvaluationWeights.model_validate_json(row["evaluation_weights"]),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class VacancyRepository:  # SQLite-backed vacancy storage
    """Vacancies are validated by the ``Vacancy`` model before they are written,
    so weights that do not sum to 100 never reach the table."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def create(self, vacancy: Vacancy) -> Vacancy:
        checked = Vacancy.model_validate(vacancy.model_dump())
        now = utcnow()
        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                """INSERT INTO vacancies
                   (title, description, requirements, evaluation_weights, status, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    checked.title,
                    checked.description,
                    checked.requirements.model_dump_json(),
                    checked.evaluation_weights.model_dump_json(),
                    checked.status,
                    now.isoformat(),
                    now.isoformat(),
                ),
            )
            vacancy_id = int(cur.lastrowid)
        return checked.model_copy(update={"id": vacancy_id, "created_at": now, "updated_at": now})

    def update(self, vacancy: Vacancy) -> Optional[Vacancy]:
        if vacancy.id is None:
            raise ValueError("vacancy id is required for update")
        checked = Vacancy.model_validate(vacancy.model_dump())
        now = utcnow()
        with get_conn(self._db_path) as conn:
            cur = conn.execute(
                """UPDATE vacancies
                   SET title = ?, description = ?, requirements = ?, evaluation_weights = ?,
                       status = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    checked.title,
                    checked.description,
                    checked.requirements.model_dump_json(),
                    checked.evaluation_weights.model_dump_json(),
                    checked.status,
                    now.isoformat(),
                    checked.id,
                ),
            )
            if cur.rowcount == 0:
                return None
        return self.get(checked.id)

    def get(self, vacancy_id: int) -> Optional[Vacancy]:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT * FROM vacancies WHERE id = ?", (vacancy_id,)).fetchone()
        return _row_to_vacancy(row) if row else None

    def list_active(self) -> List[Vacancy]:
        with get_conn(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM vacancies WHERE status = 'active' ORDER BY created_at DESC, id DESC"
            ).fetchall()
        return [_row_to_vacancy(row) for row in rows]


__all__ = ["VacancyRepository"]
