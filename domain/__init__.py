"""Domain models shared by storage and services."""
from .models import (
    AnalysisData,
    Attachment,
    Candidate,
    CommunicationMetrics,
    DialogueEntry,
    EducationRequirement,
    Evaluation,
    EvaluationWeights,
    ExperienceAnalysis,
    ExperienceRequirement,
    ExtractedSkill,
    InterviewStage,
    InterviewState,
    LanguageRequirement,
    MatchingResult,
    PromptTemplate,
    RedFlag,
    RequiredSkill,
    Requirements,
    Vacancy,
    utcnow,
)

__all__ = [
    "AnalysisData",
    "Attachment",
    "Candidate",
    "CommunicationMetrics",
    "DialogueEntry",
    "EducationRequirement",
    "Evaluation",
    "EvaluationWeights",
    "ExperienceAnalysis",
    "ExperienceRequirement",
    "ExtractedSkill",
    "InterviewStage",
    "InterviewState",
    "LanguageRequirement",
    "MatchingResult",
    "PromptTemplate",
    "RedFlag",
    "RequiredSkill",
    "Requirements",
    "Vacancy",
    "utcnow",
]
