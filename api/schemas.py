"""Pydantic schemas for the chat transport API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from domain.models import InterviewStage, Recommendation
from services.interview_flow import InboundMessage, TurnError, TurnOutcome


class ChatUser(BaseModel):
    external_user_id: str = Field(min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None

    def as_message(self) -> InboundMessage:
        return InboundMessage(**self.model_dump())


class SelectVacancyReq(ChatUser):
    vacancy_id: int


class MessageReq(InboundMessage):
    pass


class VacancyOption(BaseModel):
    id: int
    title: str


class ChatResp(BaseModel):
    reply: str
    stage: InterviewStage
    vacancy_id: Optional[int] = None
    question_count: int = 0
    completed: bool = False
    vacancies: List[VacancyOption] = Field(default_factory=list)
    recommendation: Optional[Recommendation] = None
    overall_score: Optional[int] = None
    error: Optional[TurnError] = None

    @classmethod
    def from_outcome(cls, outcome: TurnOutcome) -> "ChatResp":
        evaluation = outcome.evaluation
        return cls(
            reply=outcome.reply,
            stage=outcome.stage,
            vacancy_id=outcome.vacancy_id,
            question_count=outcome.question_count,
            completed=outcome.completed,
            vacancies=[VacancyOption(id=v.id, title=v.title) for v in outcome.vacancies if v.id is not None],
            recommendation=evaluation.recommendation if evaluation else None,
            overall_score=evaluation.overall_score if evaluation else None,
            error=outcome.error,
        )


class StateResp(BaseModel):
    external_user_id: str
    stage: InterviewStage
    vacancy_id: Optional[int] = None
    question_count: int
    completion_percentage: int
