"""Persistence helpers for prompt templates."""
from __future__ import annotations

import sqlite3
from typing import List, Mapping, Optional

from domain.models import PromptTemplate, utcnow

from .sqlite import get_conn


def _row_to_template(row: sqlite3.Row) -> PromptTemplate:
    return PromptTemplate(
        name=row["name"],
        category=row["category"],
        template=row["prompt_template"],
        is_active=bool(row["is_active"]),
        description=row["description"],
    )


class PromptRepository:  # SQLite-backed prompt_settings table
    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def find_active(self) -> List[PromptTemplate]:
        with get_conn(self._db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM prompt_settings WHERE is_active = 1 ORDER BY name"
            ).fetchall()
        return [_row_to_template(row) for row in rows]

    def get(self, name: str) -> Optional[PromptTemplate]:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT * FROM prompt_settings WHERE name = ?", (name,)).fetchone()
        return _row_to_template(row) if row else None

    def upsert(self, template: PromptTemplate) -> PromptTemplate:
        now = utcnow().isoformat()
        with get_conn(self._db_path) as conn:
            conn.execute(
                """INSERT INTO prompt_settings
                   (name, category, prompt_template, is_active, description, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT (name) DO UPDATE SET
                     category = excluded.category,
                     prompt_template = excluded.prompt_template,
                     is_active = excluded.is_active,
                     description = excluded.description,
                     updated_at = excluded.updated_at""",
                (
                    template.name,
                    template.category,
                    template.template,
                    int(template.is_active),
                    template.description,
                    now,
                    now,
                ),
            )
        return template

    def seed_defaults(self, templates: Mapping[str, str], category: str = "default") -> int:
        """Insert templates that are not stored yet; existing rows are left untouched."""

        now = utcnow().isoformat()
        inserted = 0
        with get_conn(self._db_path) as conn:
            for name, body in templates.items():
                cur = conn.execute(
                    """INSERT OR IGNORE INTO prompt_settings
                       (name, category, prompt_template, is_active, description, created_at, updated_at)
                       VALUES (?, ?, ?, 1, ?, ?, ?)""",
                    (name, category, body, "seeded default", now, now),
                )
                inserted += cur.rowcount
        return inserted


__all__ = ["PromptRepository"]
