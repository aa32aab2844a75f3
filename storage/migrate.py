"""SQLite schema bootstrap."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS candidates (
  external_id TEXT PRIMARY KEY,
  first_name TEXT,
  last_name TEXT,
  username TEXT,
  created_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS vacancies (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  title TEXT NOT NULL,
  description TEXT NOT NULL,
  requirements TEXT NOT NULL,
  evaluation_weights TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'inactive')),
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS dialogues (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  entry_id TEXT NOT NULL UNIQUE,
  candidate_key TEXT NOT NULL REFERENCES candidates(external_id) ON DELETE CASCADE,
  vacancy_id INTEGER,
  message_type TEXT NOT NULL CHECK (message_type IN ('text', 'audio', 'system', 'document')),
  sender TEXT NOT NULL CHECK (sender IN ('candidate', 'bot')),
  content TEXT NOT NULL,
  transcription TEXT,
  attachment TEXT,
  created_at TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_dialogues_candidate_vacancy ON dialogues(candidate_key, vacancy_id);",
    """
CREATE TABLE IF NOT EXISTS evaluations (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  candidate_key TEXT NOT NULL,
  vacancy_id INTEGER NOT NULL,
  overall_score INTEGER NOT NULL CHECK (overall_score BETWEEN 0 AND 100),
  technical_score INTEGER NOT NULL CHECK (technical_score BETWEEN 0 AND 100),
  communication_score INTEGER NOT NULL CHECK (communication_score BETWEEN 0 AND 100),
  problem_solving_score INTEGER NOT NULL CHECK (problem_solving_score BETWEEN 0 AND 100),
  strengths TEXT NOT NULL,
  gaps TEXT NOT NULL,
  contradictions TEXT NOT NULL,
  recommendation TEXT NOT NULL CHECK (recommendation IN ('proceed', 'reject', 'clarify')),
  feedback TEXT NOT NULL,
  analysis_data TEXT NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  UNIQUE (candidate_key, vacancy_id)
);
""",
    """
CREATE TABLE IF NOT EXISTS prompt_settings (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  name TEXT NOT NULL UNIQUE,
  category TEXT NOT NULL,
  prompt_template TEXT NOT NULL,
  is_active INTEGER NOT NULL DEFAULT 1,
  description TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS interview_states (
  candidate_key TEXT NOT NULL,
  vacancy_id INTEGER NOT NULL,
  stage TEXT NOT NULL CHECK (stage IN ('selecting_vacancy', 'interviewing', 'completed')),
  question_count INTEGER NOT NULL DEFAULT 0,
  started_at TEXT NOT NULL,
  last_activity TEXT NOT NULL,
  PRIMARY KEY (candidate_key, vacancy_id)
);
""",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
