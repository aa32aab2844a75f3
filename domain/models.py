"""Shared type definitions for candidates, vacancies, dialogues and evaluations."""
from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

SkillLevel = Literal["beginner", "intermediate", "advanced", "expert"]
LanguageLevel = Literal["basic", "intermediate", "advanced", "native"]
MessageType = Literal["text", "audio", "system", "document"]
Sender = Literal["candidate", "bot"]
Recommendation = Literal["proceed", "reject", "clarify"]
Severity = Literal["low", "medium", "high"]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Candidate(BaseModel):
    external_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.first_name, self.last_name) if part]
        if parts:
            return " ".join(parts)
        return self.username or self.external_id


class RequiredSkill(BaseModel):
    name: str = Field(min_length=1)
    level: SkillLevel
    mandatory: bool = False
    weight: int = Field(ge=1, le=10)


class ExperienceRequirement(BaseModel):
    domain: str = Field(min_length=1)
    minimum_years: float = Field(ge=0)
    preferred: bool = False


class EducationRequirement(BaseModel):
    degree: str
    field: Optional[str] = None
    mandatory: bool = False


class LanguageRequirement(BaseModel):
    language: str
    level: LanguageLevel
    mandatory: bool = False


class Requirements(BaseModel):
    technical_skills: List[RequiredSkill] = Field(default_factory=list)
    experience: List[ExperienceRequirement] = Field(default_factory=list)
    education: Optional[List[EducationRequirement]] = None
    languages: Optional[List[LanguageRequirement]] = None
    soft_skills: List[str] = Field(default_factory=list)


class EvaluationWeights(BaseModel):
    """Category weights in percent; validated to sum to exactly 100."""

    technical_skills: int = Field(default=50, ge=0)
    communication: int = Field(default=30, ge=0)
    problem_solving: int = Field(default=20, ge=0)

    @model_validator(mode="after")
    def _sum_to_hundred(self) -> "EvaluationWeights":
        total = self.technical_skills + self.communication + self.problem_solving
        if total != 100:
            raise ValueError(f"evaluation weights must sum to 100, got {total}")
        return self


class Vacancy(BaseModel):
    id: Optional[int] = None
    title: str = Field(min_length=1)
    description: str = ""
    requirements: Requirements = Field(default_factory=Requirements)
    evaluation_weights: EvaluationWeights = Field(default_factory=EvaluationWeights)
    status: Literal["active", "inactive"] = "active"
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    def prompt_context(self) -> str:
        """Vacancy summary substituted into prompts as ``vacancy_context``."""

        weights = self.evaluation_weights
        return (
            f"Vacancy: {self.title}\n"
            f"Description: {self.description}\n"
            f"Requirements: {self.requirements.model_dump_json(indent=2, exclude_none=True)}\n"
            f"Evaluation weights: technical skills {weights.technical_skills}%, "
            f"communication {weights.communication}%, problem solving {weights.problem_solving}%"
        )


class Attachment(BaseModel):
    file_name: str
    file_path: Optional[str] = None
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = Field(default=None, ge=0)


class DialogueEntry(BaseModel):
    """One immutable turn of a candidate/bot conversation."""

    entry_id: str = Field(default_factory=lambda: uuid4().hex)
    candidate_key: str
    vacancy_id: Optional[int] = None
    message_type: MessageType = "text"
    sender: Sender
    content: str = ""
    transcription: Optional[str] = None
    attachment: Optional[Attachment] = None
    created_at: dt.datetime = Field(default_factory=utcnow)

    model_config = {"frozen": True}

    @property
    def text(self) -> str:
        if self.message_type == "audio" and self.transcription:
            return self.transcription
        return self.content


class InterviewStage(str, Enum):
    SELECTING_VACANCY = "selecting_vacancy"
    INTERVIEWING = "interviewing"
    COMPLETED = "completed"


class InterviewState(BaseModel):
    candidate_key: str
    vacancy_id: Optional[int] = None
    stage: InterviewStage = InterviewStage.SELECTING_VACANCY
    question_count: int = Field(default=0, ge=0)
    started_at: dt.datetime = Field(default_factory=utcnow)
    last_activity: dt.datetime = Field(default_factory=utcnow)

    def completion_percentage(self, max_questions: int) -> int:
        if max_questions <= 0:
            return 100
        return min(round(self.question_count * 100 / max_questions), 100)


class ExtractedSkill(BaseModel):
    name: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: List[str] = Field(default_factory=list)
    level: Optional[SkillLevel] = None


class ExperienceAnalysis(BaseModel):
    total_years: float = Field(default=0.0, ge=0)
    domains: List[str] = Field(default_factory=list)
    relevant_experience: float = Field(default=0.0, ge=0)
    career_progression: Literal["ascending", "stable", "declining"] = "stable"


class CommunicationMetrics(BaseModel):
    clarity: int = Field(default=5, ge=1, le=10)
    completeness: int = Field(default=5, ge=1, le=10)
    relevance: int = Field(default=5, ge=1, le=10)
    professional_tone: int = Field(default=5, ge=1, le=10)

    def average(self) -> float:
        return (self.clarity + self.completeness + self.relevance + self.professional_tone) / 4


class RedFlag(BaseModel):
    type: Literal["contradiction", "inconsistency", "concern"] = "concern"
    description: str = ""
    severity: Severity = "low"
    evidence: List[str] = Field(default_factory=list)


class MatchingResult(BaseModel):
    skill_name: str
    required: bool = False
    candidate_level: Optional[str] = None
    required_level: str = ""
    match: bool = False
    score: int = Field(default=0, ge=0, le=100)


class AnalysisData(BaseModel):
    extracted_skills: List[ExtractedSkill] = Field(default_factory=list)
    experience_analysis: ExperienceAnalysis = Field(default_factory=ExperienceAnalysis)
    communication_metrics: CommunicationMetrics = Field(default_factory=CommunicationMetrics)
    red_flags: List[RedFlag] = Field(default_factory=list)
    matching_results: List[MatchingResult] = Field(default_factory=list)


class Evaluation(BaseModel):
    id: Optional[int] = None
    candidate_key: str
    vacancy_id: int
    overall_score: int = Field(ge=0, le=100)
    technical_score: int = Field(ge=0, le=100)
    communication_score: int = Field(ge=0, le=100)
    problem_solving_score: int = Field(ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    gaps: List[str] = Field(default_factory=list)
    contradictions: List[str] = Field(default_factory=list)
    recommendation: Recommendation = "clarify"
    feedback: str = ""
    analysis_data: AnalysisData = Field(default_factory=AnalysisData)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class PromptTemplate(BaseModel):
    name: str = Field(min_length=1)
    category: str = "general"
    template: str
    is_active: bool = True
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        return value.strip()

