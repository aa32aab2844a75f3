from __future__ import annotations

import json
import logging

import pytest

from observability import InterviewEvent, log_event, span
from observability.logger import _JsonLineFormatter


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def events():
    handler = _Collect()
    logger = logging.getLogger("interview.events")
    logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        logger.removeHandler(handler)


def test_event_is_tagged_with_candidate_and_vacancy(events):
    event = log_event("turn.done", "u1", vacancy_id=3, stage="interviewing", question=2, outcome="next_question")
    assert event.summary() == "candidate=u1 vacancy=3 kind=turn.done stage=interviewing question=2 outcome=next_question"
    assert events[-1].event is event
    assert events[-1].getMessage() == event.summary()


def test_json_line_carries_details():
    event = InterviewEvent(kind="evaluation.stored", candidate="u1", vacancy_id=1, details={"overall": 76})
    record = logging.LogRecord("interview.events", logging.INFO, "", 0, event.summary(), (), None)
    record.event = event
    line = json.loads(_JsonLineFormatter().format(record))
    assert line["vacancy_id"] == 1
    assert line["details"] == {"overall": 76}


def test_span_logs_error_outcome_at_warning(events):
    with pytest.raises(RuntimeError):
        with span("model_call", "u1", vacancy_id=2):
            raise RuntimeError("boom")
    record = events[-1]
    assert record.levelno == logging.WARNING
    assert record.event.details["outcome"] == "error"
    assert record.event.vacancy_id == 2
