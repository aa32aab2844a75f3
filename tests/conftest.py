import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

from config.settings import settings
from domain.models import RequiredSkill, Requirements, Vacancy
from storage.migrate import migrate
from storage.vacancies import VacancyRepository


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


class ScriptedModel:
    """Fake ``generate`` returning queued replies; exceptions in the queue are raised."""

    def __init__(self, replies=None, default=None):
        self.replies = list(replies or [])
        self.default = default
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.replies:
            reply = self.replies.pop(0)
        else:
            reply = self.default
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise AssertionError("ScriptedModel ran out of replies")
        return reply


@pytest.fixture
def scripted_model():
    return ScriptedModel


@pytest.fixture
def vacancy(tmp_db):
    repo = VacancyRepository(tmp_db)
    return repo.create(
        Vacancy(
            title="Backend Engineer",
            description="Python services and SQL.",
            requirements=Requirements(
                technical_skills=[
                    RequiredSkill(name="Python", level="advanced", mandatory=True, weight=8),
                    RequiredSkill(name="SQL", level="intermediate", mandatory=False, weight=4),
                ],
                soft_skills=["communication"],
            ),
        )
    )


@pytest.fixture
def make_flow(tmp_db):
    from api_server import build_flow

    def _make(generate, **overrides):
        return build_flow(settings.model_copy(update=overrides), generate)

    return _make
