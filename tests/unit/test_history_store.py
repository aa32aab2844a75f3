from __future__ import annotations

import datetime as dt

import pytest

from domain.models import DialogueEntry
from services.errors import UnknownCandidateError
from services.history import HistoryStore
from storage.candidates import CandidateRepository
from storage.dialogues import DialogueRepository
from storage.sqlite import StoreUnavailableError


class FlakyDialogues(DialogueRepository):
    down = False

    def _check(self):
        if self.down:
            raise StoreUnavailableError("disk I/O error")

    def insert(self, entry):
        self._check()
        return super().insert(entry)

    def list_entries(self, candidate_key, vacancy_id=None, limit=None):
        self._check()
        return super().list_entries(candidate_key, vacancy_id, limit)

    def delete(self, candidate_key, vacancy_id=None):
        self._check()
        return super().delete(candidate_key, vacancy_id)


class FlakyCandidates(CandidateRepository):
    down = False

    def find_or_create(self, external_id, **kwargs):
        if self.down:
            raise StoreUnavailableError("database is locked")
        return super().find_or_create(external_id, **kwargs)

    def get(self, external_id):
        if self.down:
            raise StoreUnavailableError("database is locked")
        return super().get(external_id)


@pytest.fixture
def parts(tmp_db):
    candidates = FlakyCandidates(tmp_db)
    dialogues = FlakyDialogues(tmp_db)
    return candidates, dialogues, HistoryStore(candidates, dialogues)


def _entry(key, text, sender="candidate", **extra):
    return DialogueEntry(candidate_key=key, sender=sender, content=text, **extra)


def test_append_requires_known_candidate(parts):
    _, _, store = parts
    with pytest.raises(UnknownCandidateError):
        store.append("ghost", _entry("ghost", "hi"))


def test_append_persists_and_history_is_ordered_and_limited(parts):
    _, dialogues, store = parts
    store.ensure_candidate("u1", first_name="Ann")
    for i in range(6):
        result = store.append("u1", _entry("u1", f"m{i}"), vacancy_key=1)
        assert result.persisted
    assert [e.content for e in store.history("u1", limit=3)] == ["m3", "m4", "m5"]
    assert len(dialogues.list_entries("u1", 1)) == 6
    times = [e.created_at for e in store.history("u1")]
    assert times == sorted(times)


def test_created_at_forced_non_decreasing(parts):
    _, _, store = parts
    store.ensure_candidate("u1")
    later = dt.datetime(2030, 1, 1, tzinfo=dt.timezone.utc)
    store.append("u1", _entry("u1", "first", created_at=later))
    second = store.append("u1", _entry("u1", "second", created_at=later - dt.timedelta(days=1)))
    assert second.entry.created_at == later
    assert [e.content for e in store.history("u1", vacancy_key=None)] == ["first", "second"]


def test_store_failure_is_non_fatal_and_entries_stay_pending(parts):
    _, dialogues, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "saved"), vacancy_key=2)
    dialogues.down = True
    result = store.append("u1", _entry("u1", "cached only"), vacancy_key=2)
    assert not result.persisted
    assert "disk I/O" in result.error
    assert store.pending_count("u1") == 1
    assert [e.content for e in store.history("u1", vacancy_key=2)] == ["saved", "cached only"]

    dialogues.down = False
    assert [e.content for e in store.history("u1", vacancy_key=2)] == ["saved", "cached only"]
    assert store.retry_pending("u1") == 1
    assert store.pending_count("u1") == 0
    assert [e.content for e in dialogues.list_entries("u1", 2)] == ["saved", "cached only"]


def test_filtered_history_reads_store_and_refreshes_cache(parts, tmp_db):
    _, _, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "a"), vacancy_key=1)
    store.append("u1", _entry("u1", "b"), vacancy_key=2)
    DialogueRepository(tmp_db).insert(_entry("u1", "written elsewhere", vacancy_id=1))
    assert [e.content for e in store.history("u1")] == ["a", "b"]
    assert [e.content for e in store.history("u1", vacancy_key=1)] == ["a", "written elsewhere"]
    assert [e.content for e in store.history("u1")] == ["a", "b", "written elsewhere"]


def test_uncached_candidate_is_loaded_from_store(parts, tmp_db):
    _, _, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "old"))
    fresh = HistoryStore(CandidateRepository(tmp_db), DialogueRepository(tmp_db))
    assert [e.content for e in fresh.history("u1")] == ["old"]
    fresh.append("u1", _entry("u1", "new"))
    assert [e.content for e in fresh.history("u1")] == ["old", "new"]


def test_clear_is_idempotent(parts):
    _, dialogues, store = parts
    store.clear("never-seen")
    assert store.history("never-seen") == []
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "x"), vacancy_key=1)
    store.append("u1", _entry("u1", "y"), vacancy_key=2)
    store.clear("u1", vacancy_key=1)
    assert [e.content for e in store.history("u1")] == ["y"]
    store.clear("u1")
    store.clear("u1")
    assert store.history("u1") == []
    assert store.history("u1", vacancy_key=2) == []
    assert dialogues.list_entries("u1") == []


def test_history_degrades_to_cache_when_store_down(parts):
    _, dialogues, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "x"), vacancy_key=1)
    store.append("u1", _entry("u1", "y"), vacancy_key=2)
    dialogues.down = True
    assert [e.content for e in store.history("u1", vacancy_key=2)] == ["y"]
    assert store.history("u1", limit=0) == []


def test_ensure_candidate_degrades_when_store_down(parts):
    candidates, _, store = parts
    candidates.down = True
    candidate = store.ensure_candidate("u9", first_name="Eve")
    assert candidate.display_name == "Eve"
    result = store.append("u9", _entry("u9", "offline"))
    assert not result.persisted
    candidates.down = False
    assert store.retry_pending("u9") == 1
    assert candidates.get("u9").first_name == "Eve"


def test_context_summary_labels_roles_and_uses_transcription(parts):
    _, _, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "Question one?", sender="bot"), vacancy_key=1)
    store.append(
        "u1",
        _entry("u1", "voice.ogg", message_type="audio", transcription="I built APIs"),
        vacancy_key=1,
    )
    store.append("u1", _entry("u1", "Nice.", sender="bot"), vacancy_key=1)
    summary = store.context_summary("u1", 2, vacancy_key=1)
    assert summary == "Candidate: I built APIs\nHR Assistant: Nice."


def test_clear_one_vacancy_on_fresh_store_keeps_other_vacancies(parts, tmp_db):
    _, _, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "v1 answer"), vacancy_key=1)
    store.append("u1", _entry("u1", "v2 answer"), vacancy_key=2)
    fresh = HistoryStore(CandidateRepository(tmp_db), DialogueRepository(tmp_db))
    fresh.clear("u1", vacancy_key=1)
    assert [e.content for e in fresh.history("u1")] == ["v2 answer"]


def test_outage_on_first_load_does_not_hide_stored_history(parts, tmp_db):
    _, _, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "old"))
    dialogues = FlakyDialogues(tmp_db)
    fresh = HistoryStore(CandidateRepository(tmp_db), dialogues)
    dialogues.down = True
    assert not fresh.append("u1", _entry("u1", "during outage")).persisted
    assert [e.content for e in fresh.history("u1")] == ["during outage"]

    dialogues.down = False
    assert [e.content for e in fresh.history("u1")] == ["old", "during outage"]
    assert fresh.retry_pending("u1") == 1
    assert [e.content for e in fresh.history("u1")] == ["old", "during outage"]
    assert [e.content for e in dialogues.list_entries("u1")] == ["old", "during outage"]


def test_append_after_outage_merges_stored_history(parts, tmp_db):
    _, _, store = parts
    store.ensure_candidate("u1")
    store.append("u1", _entry("u1", "old"))
    dialogues = FlakyDialogues(tmp_db)
    fresh = HistoryStore(CandidateRepository(tmp_db), dialogues)
    dialogues.down = True
    fresh.append("u1", _entry("u1", "during outage"))
    dialogues.down = False
    fresh.append("u1", _entry("u1", "after"))
    assert fresh.pending_count("u1") == 0
    assert [e.content for e in fresh.history("u1")] == ["old", "during outage", "after"]


def test_next_successful_append_writes_pending_entries(parts):
    _, dialogues, store = parts
    store.ensure_candidate("u1")
    dialogues.down = True
    store.append("u1", _entry("u1", "offline"), vacancy_key=1)
    dialogues.down = False
    assert store.append("u1", _entry("u1", "online"), vacancy_key=1).persisted
    assert store.pending_count("u1") == 0
    assert [e.content for e in dialogues.list_entries("u1", 1)] == ["offline", "online"]
