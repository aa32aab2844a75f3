"""Conversation history held in memory and mirrored to the dialogue table.

Reads without a vacancy filter are served from memory once a candidate has
been loaded. Filtered reads, and reads for candidates not yet loaded, go to
the database and refresh memory as a side effect. When the database is
unreachable both paths fall back to memory, and appends are kept as pending
entries until ``retry_pending`` manages to write them.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Set

from pydantic import BaseModel

from domain.models import Candidate, DialogueEntry, utcnow
from storage.candidates import CandidateRepository
from storage.dialogues import DialogueRepository
from storage.sqlite import StoreUnavailableError

from .errors import UnknownCandidateError

logger = logging.getLogger(__name__)

ROLE_LABELS = {"candidate": "Candidate", "bot": "HR Assistant"}


class AppendResult(BaseModel):
    entry: DialogueEntry
    persisted: bool
    error: Optional[str] = None


def _tail(entries: List[DialogueEntry], limit: Optional[int]) -> List[DialogueEntry]:
    if limit is None:
        return entries
    if limit <= 0:
        return []
    return entries[-limit:]


def _matches(entry: DialogueEntry, vacancy_key: Optional[int]) -> bool:
    return vacancy_key is None or entry.vacancy_id == vacancy_key


class HistoryStore:
    def __init__(self, candidates: CandidateRepository, dialogues: DialogueRepository) -> None:
        self._candidates = candidates
        self._dialogues = dialogues
        self._lock = threading.RLock()
        self._cache: Dict[str, List[DialogueEntry]] = {}
        self._hydrated: Set[str] = set()
        self._known: Dict[str, Candidate] = {}
        self._unsynced: Set[str] = set()
        self._pending: Dict[str, Dict[str, DialogueEntry]] = {}

    # -- identity -----------------------------------------------------------------

    def ensure_candidate(
        self,
        external_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Candidate:
        """Register ``external_id`` once and fill in display-name fields it lacks."""

        try:
            candidate = self._candidates.find_or_create(
                external_id, first_name=first_name, last_name=last_name, username=username
            )
        except StoreUnavailableError as exc:
            logger.warning("Candidate store unavailable, keeping %s in memory: %s", external_id, exc)
            with self._lock:
                known = self._known.get(external_id)
                if known is None:
                    candidate = Candidate(
                        external_id=external_id, first_name=first_name, last_name=last_name, username=username
                    )
                else:
                    candidate = known.model_copy(
                        update={
                            "first_name": known.first_name or first_name,
                            "last_name": known.last_name or last_name,
                            "username": known.username or username,
                        }
                    )
                self._known[external_id] = candidate
                self._unsynced.add(external_id)
            return candidate
        with self._lock:
            self._known[external_id] = candidate
            self._unsynced.discard(external_id)
        return candidate

    def _require_candidate(self, candidate_key: str) -> None:
        with self._lock:
            if candidate_key in self._known:
                return
        try:
            candidate = self._candidates.get(candidate_key)
        except StoreUnavailableError:
            return
        if candidate is None:
            raise UnknownCandidateError(candidate_key)
        with self._lock:
            self._known.setdefault(candidate_key, candidate)

    def _sync_candidate(self, candidate_key: str) -> None:
        with self._lock:
            if candidate_key not in self._unsynced:
                return
            known = self._known[candidate_key]
        self._candidates.find_or_create(
            candidate_key, first_name=known.first_name, last_name=known.last_name, username=known.username
        )
        with self._lock:
            self._unsynced.discard(candidate_key)

    # -- writes -------------------------------------------------------------------

    def append(
        self,
        candidate_key: str,
        entry: DialogueEntry,
        vacancy_key: Optional[int] = None,
    ) -> AppendResult:
        """Add ``entry`` to memory, then to the database.

        A failed database write is reported in the result rather than raised;
        the entry stays pending, is merged into later database reads and is
        written by the next successful append.
        """

        self._require_candidate(candidate_key)
        self._hydrate(candidate_key)
        update: Dict[str, object] = {"candidate_key": candidate_key}
        if vacancy_key is not None:
            update["vacancy_id"] = vacancy_key
        with self._lock:
            entries = self._cache.setdefault(candidate_key, [])
            if entries and entry.created_at < entries[-1].created_at:
                update["created_at"] = entries[-1].created_at
            entry = entry.model_copy(update=update)
            entries.append(entry)

        try:
            self._sync_candidate(candidate_key)
            self._dialogues.insert(entry)
        except StoreUnavailableError as exc:
            with self._lock:
                self._pending.setdefault(candidate_key, {})[entry.entry_id] = entry
            logger.warning("Dialogue entry %s kept in memory only: %s", entry.entry_id, exc)
            return AppendResult(entry=entry, persisted=False, error=str(exc))
        self.retry_pending(candidate_key)
        return AppendResult(entry=entry, persisted=True)

    def retry_pending(self, candidate_key: str) -> int:
        """Write pending entries for ``candidate_key``; returns how many were stored."""

        with self._lock:
            pending = list(self._pending.get(candidate_key, {}).values())
        if not pending:
            return 0
        written = 0
        try:
            self._sync_candidate(candidate_key)
            for entry in pending:
                self._dialogues.insert(entry)
                with self._lock:
                    bucket = self._pending.get(candidate_key)
                    if bucket is not None:
                        bucket.pop(entry.entry_id, None)
                        if not bucket:
                            self._pending.pop(candidate_key, None)
                written += 1
        except StoreUnavailableError as exc:
            logger.warning("Retry stopped for %s after %d entries: %s", candidate_key, written, exc)
        return written

    def pending_count(self, candidate_key: str) -> int:
        with self._lock:
            return len(self._pending.get(candidate_key, {}))

    def clear(self, candidate_key: str, vacancy_key: Optional[int] = None) -> None:
        """Drop history for the key from memory and the database. Clearing nothing is fine."""

        with self._lock:
            if vacancy_key is None:
                self._cache[candidate_key] = []
                self._hydrated.add(candidate_key)
                self._pending.pop(candidate_key, None)
            else:
                if candidate_key in self._cache:
                    self._cache[candidate_key] = [
                        entry for entry in self._cache[candidate_key] if entry.vacancy_id != vacancy_key
                    ]
                bucket = self._pending.get(candidate_key, {})
                for entry_id in [key for key, entry in bucket.items() if entry.vacancy_id == vacancy_key]:
                    bucket.pop(entry_id)
        try:
            removed = self._dialogues.delete(candidate_key, vacancy_key)
        except StoreUnavailableError as exc:
            logger.warning("History for %s cleared in memory only: %s", candidate_key, exc)
            return
        logger.info("Cleared %d stored entries for %s vacancy=%s", removed, candidate_key, vacancy_key)

    # -- reads --------------------------------------------------------------------

    def history(
        self,
        candidate_key: str,
        vacancy_key: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[DialogueEntry]:
        """Entries oldest first, at most ``limit`` of the newest ones."""

        with self._lock:
            if vacancy_key is None and candidate_key in self._hydrated:
                return _tail(list(self._cache[candidate_key]), limit)

        read_started = utcnow()
        try:
            stored = self._dialogues.list_entries(candidate_key, vacancy_key)
        except StoreUnavailableError as exc:
            logger.warning("Dialogue store unavailable, serving %s from memory: %s", candidate_key, exc)
            with self._lock:
                cached = [entry for entry in self._cache.get(candidate_key, []) if _matches(entry, vacancy_key)]
            return _tail(cached, limit)

        with self._lock:
            seen = {entry.entry_id for entry in stored}
            extra = [
                entry
                for entry in self._pending.get(candidate_key, {}).values()
                if _matches(entry, vacancy_key) and entry.entry_id not in seen
            ]
            seen.update(entry.entry_id for entry in extra)
            extra.extend(
                entry
                for entry in self._cache.get(candidate_key, [])
                if _matches(entry, vacancy_key) and entry.entry_id not in seen and entry.created_at >= read_started
            )
            merged = sorted(stored + extra, key=lambda entry: entry.created_at)
            if vacancy_key is None:
                self._cache[candidate_key] = list(merged)
                self._hydrated.add(candidate_key)
            elif candidate_key in self._cache:
                others = [entry for entry in self._cache[candidate_key] if entry.vacancy_id != vacancy_key]
                self._cache[candidate_key] = sorted(others + merged, key=lambda entry: entry.created_at)
        return _tail(merged, limit)

    def context_summary(
        self,
        candidate_key: str,
        max_messages: int,
        vacancy_key: Optional[int] = None,
    ) -> str:
        """Last ``max_messages`` turns as role-tagged lines for prompt substitution."""

        entries = self.history(candidate_key, vacancy_key, limit=max_messages)
        return "\n".join(f"{ROLE_LABELS[entry.sender]}: {entry.text}" for entry in entries)

    def _hydrate(self, candidate_key: str) -> None:
        """Load stored history once; entries cached during an outage are merged in."""

        with self._lock:
            if candidate_key in self._hydrated:
                return
        try:
            stored = self._dialogues.list_entries(candidate_key)
        except StoreUnavailableError as exc:
            logger.warning("Could not load stored history for %s: %s", candidate_key, exc)
            return
        with self._lock:
            if candidate_key in self._hydrated:
                return
            seen = {entry.entry_id for entry in stored}
            cached = [entry for entry in self._cache.get(candidate_key, []) if entry.entry_id not in seen]
            self._cache[candidate_key] = sorted(stored + cached, key=lambda entry: entry.created_at)
            self._hydrated.add(candidate_key)


__all__ = ["AppendResult", "HistoryStore", "ROLE_LABELS"]
