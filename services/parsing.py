"""Parse free-form model replies into validated results.

Nothing returned by the model is trusted as typed data: each reply is
decoded as JSON, validated against a pydantic model and returned as one of
``ParsedQuestion``, ``ParsedFeedback`` or ``ParseError``.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from domain.models import AnalysisData
from llm_gateway import strip_code_fences


class ParsedQuestion(BaseModel):
    feedback: str = ""
    question: str


class ParsedFeedback(BaseModel):
    feedback: str


class ParseError(BaseModel):
    reason: str
    raw: str = ""


TurnReply = Union[ParsedQuestion, ParsedFeedback, ParseError]


class _TurnPayload(BaseModel):
    feedback: str = ""
    next_question: Optional[str] = None

    @field_validator("feedback", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class AnalysisDraft(BaseModel):
    """Model-reported interview analysis before scores are computed."""

    problem_solving_score: Optional[float] = Field(default=None, allow_inf_nan=False)
    strengths: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    contradictions: List[str] = Field(default_factory=list)
    feedback: str = ""
    analysis_data: AnalysisData = Field(default_factory=AnalysisData)


def _extract_object(raw: str) -> Dict[str, Any]:
    text = strip_code_fences(raw)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ValueError("no JSON object in reply")
    data = json.loads(text[start : end + 1])
    if not isinstance(data, dict):
        raise ValueError("reply is not a JSON object")
    return data


def parse_turn_reply(raw: str) -> TurnReply:
    """Turn a chat reply into the next question or closing feedback.

    An empty or missing question means the model ended the interview.
    """

    if not raw or not raw.strip():
        return ParseError(reason="empty reply", raw=raw or "")
    try:
        data = _extract_object(raw)
        payload = _TurnPayload.model_validate(data)
    except (ValueError, ValidationError) as exc:
        return ParseError(reason=str(exc).splitlines()[0], raw=raw)
    question = (payload.next_question or "").strip()
    feedback = payload.feedback.strip()
    if question:
        return ParsedQuestion(feedback=feedback, question=question)
    if feedback:
        return ParsedFeedback(feedback=feedback)
    return ParseError(reason="reply has neither feedback nor next_question", raw=raw)


def parse_analysis(raw: str) -> Union[AnalysisDraft, ParseError]:
    if not raw or not raw.strip():
        return ParseError(reason="empty reply", raw=raw or "")
    try:
        return AnalysisDraft.model_validate(_extract_object(raw))
    except (ValueError, ValidationError) as exc:
        return ParseError(reason=str(exc).splitlines()[0], raw=raw)


__all__ = [
    "AnalysisDraft",
    "ParseError",
    "ParsedFeedback",
    "ParsedQuestion",
    "TurnReply",
    "parse_analysis",
    "parse_turn_reply",
]
