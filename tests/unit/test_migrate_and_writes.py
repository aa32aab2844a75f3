"""Tests for the SQLite schema bootstrap and repositories."""
from __future__ import annotations

import datetime as dt
import sqlite3

import pytest

from domain.models import DialogueEntry, Evaluation, InterviewStage, InterviewState, PromptTemplate, Vacancy
from storage.candidates import CandidateRepository
from storage.dialogues import DialogueRepository
from storage.evaluations import EvaluationRepository
from storage.migrate import migrate
from storage.prompts import PromptRepository
from storage.sqlite import StoreUnavailableError, get_conn
from storage.states import InterviewStateRepository
from storage.vacancies import VacancyRepository


def test_migrate_is_idempotent(tmp_db):
    migrate(tmp_db)
    migrate(tmp_db)
    with get_conn(tmp_db) as conn:
        names = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"candidates", "vacancies", "dialogues", "evaluations", "prompt_settings", "interview_states"} <= names


def test_find_or_create_is_idempotent_and_enriches(tmp_db):
    repo = CandidateRepository(tmp_db)
    first = repo.find_or_create("42")
    assert first.first_name is None
    second = repo.find_or_create("42", first_name="Ann", username="ann")
    third = repo.find_or_create("42", first_name="Other")
    assert second.first_name == "Ann"
    assert third.first_name == "Ann"
    assert third.username == "ann"
    with get_conn(tmp_db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM candidates").fetchone()[0] == 1


def test_vacancy_create_update_and_list_active(tmp_db):
    repo = VacancyRepository(tmp_db)
    created = repo.create(Vacancy(title="Backend"))
    other = repo.create(Vacancy(title="Frontend"))
    assert created.id is not None
    updated = repo.update(other.model_copy(update={"status": "inactive"}))
    assert updated is not None and updated.status == "inactive"
    assert [v.title for v in repo.list_active()] == ["Backend"]
    assert repo.update(Vacancy(id=999, title="Ghost")) is None


def test_dialogues_keep_order_and_ignore_duplicates(tmp_db):
    CandidateRepository(tmp_db).find_or_create("7")
    repo = DialogueRepository(tmp_db)
    base = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
    entries = [
        DialogueEntry(candidate_key="7", vacancy_id=1, sender="bot", content=f"m{i}", created_at=base + dt.timedelta(seconds=i))
        for i in range(4)
    ]
    for entry in entries:
        repo.insert(entry)
    repo.insert(entries[0])
    assert [e.content for e in repo.list_entries("7")] == ["m0", "m1", "m2", "m3"]
    assert [e.content for e in repo.list_entries("7", limit=2)] == ["m2", "m3"]
    assert repo.delete("7", vacancy_id=1) == 4
    assert repo.list_entries("7") == []


def test_dialogue_requires_known_candidate(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        DialogueRepository(tmp_db).insert(DialogueEntry(candidate_key="nobody", sender="bot", content="x"))


def test_evaluation_upsert_keeps_single_row(tmp_db):
    repo = EvaluationRepository(tmp_db)
    scores = dict(technical_score=60, communication_score=60, problem_solving_score=60)
    first = repo.upsert(Evaluation(candidate_key="u", vacancy_id=1, overall_score=70, **scores))
    second = repo.upsert(Evaluation(candidate_key="u", vacancy_id=1, overall_score=90, recommendation="proceed", **scores))
    assert second.id == first.id
    assert second.created_at == first.created_at
    assert repo.find("u", 1).overall_score == 90
    assert len(repo.list_for_candidate("u")) == 1


def test_prompt_seed_does_not_override_edits(tmp_db):
    repo = PromptRepository(tmp_db)
    assert repo.seed_defaults({"interview_chat": "default"}) == 1
    repo.upsert(PromptTemplate(name="interview_chat", template="edited"))
    assert repo.seed_defaults({"interview_chat": "default"}) == 0
    assert repo.get("interview_chat").template == "edited"
    repo.upsert(PromptTemplate(name="interview_chat", template="edited", is_active=False))
    assert repo.find_active() == []


def test_interview_state_roundtrip(tmp_db):
    repo = InterviewStateRepository(tmp_db)
    state = InterviewState(candidate_key="u", vacancy_id=3, stage=InterviewStage.INTERVIEWING, question_count=2)
    repo.save(state)
    repo.save(state.model_copy(update={"question_count": 3}))
    loaded = repo.get("u", 3)
    assert loaded.question_count == 3
    assert repo.latest("u").vacancy_id == 3
    assert repo.delete("u") == 1
    assert repo.latest("u") is None


def test_unreachable_database_is_tagged(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(StoreUnavailableError):
        CandidateRepository(str(blocker / "db.sqlite")).get("1")
