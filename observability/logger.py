"""Interview events tagged with candidate, vacancy, stage and question number.

Every event is a single log record on the ``interview.events`` logger. The
console shows a one-line summary; when file logs are enabled the same record
is written as a JSON line to a rotating file.
"""
from __future__ import annotations

import logging
import logging.handlers
import os
import sys
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "1") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/interview-events.jsonl")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

# Detail keys worth showing on the console line, in display order
SUMMARY_KEYS = ("name", "template", "outcome", "recommendation", "overall", "degraded", "ms")

_logger = logging.getLogger("interview.events")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False


class InterviewEvent(BaseModel):
    kind: str
    candidate: str
    vacancy_id: Optional[int] = None
    stage: Optional[str] = None
    question: Optional[int] = None
    ts: float = Field(default_factory=time.time)
    details: Dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> str:
        parts = [f"candidate={self.candidate}"]
        if self.vacancy_id is not None:
            parts.append(f"vacancy={self.vacancy_id}")
        parts.append(f"kind={self.kind}")
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.question is not None:
            parts.append(f"question={self.question}")
        parts.extend(f"{key}={self.details[key]}" for key in SUMMARY_KEYS if key in self.details)
        return " ".join(parts)


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        event = getattr(record, "event", None)
        if isinstance(event, InterviewEvent):
            return event.model_dump_json()
        return super().format(record)


def _ensure_handlers() -> None:
    if _logger.handlers:
        return
    console = logging.StreamHandler(stream=sys.stdout)
    console.setFormatter(
        logging.Formatter("[%(asctime)s] %(levelname)s %(name)s :: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    _logger.addHandler(console)
    if not ENABLE_FILE_LOGS:
        return
    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    json_file = logging.handlers.RotatingFileHandler(LOG_FILE, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    json_file.setFormatter(_JsonLineFormatter())
    _logger.addHandler(json_file)


def log_event(
    kind: str,
    candidate: str,
    *,
    vacancy_id: Optional[int] = None,
    stage: Optional[str] = None,
    question: Optional[int] = None,
    level: int = logging.INFO,
    **details: Any,
) -> InterviewEvent:
    """Record one interview event and return it."""

    _ensure_handlers()
    event = InterviewEvent(
        kind=kind,
        candidate=candidate,
        vacancy_id=vacancy_id,
        stage=stage,
        question=question,
        details=details,
    )
    _logger.log(level, event.summary(), extra={"event": event})
    return event


__all__ = ["InterviewEvent", "log_event"]
