"""Turn an interview analysis into category scores and a recommendation."""
from __future__ import annotations

import logging
import math
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from domain.models import (
    AnalysisData,
    Evaluation,
    EvaluationWeights,
    Recommendation,
    RedFlag,
    Vacancy,
)
from llm_gateway import LlmGatewayError
from observability import log_event, span
from storage.evaluations import EvaluationRepository

from .errors import ModelUnavailableError
from .history import ROLE_LABELS, HistoryStore
from .parsing import AnalysisDraft, ParseError, parse_analysis
from .prompts import PromptResolver

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50

CLOSING_LINES: Dict[str, str] = {
    "proceed": "We will review your application and contact you shortly to discuss the next steps.",
    "reject": (
        "Unfortunately your profile does not match this position at the moment. "
        "Thank you for your interest, and good luck!"
    ),
    "clarify": "We need a few more details. An HR manager will contact you to arrange a follow-up conversation.",
}


class ScoreCard(BaseModel):
    technical: int
    communication: int
    problem_solving: int
    overall: int


class EvaluationResult(BaseModel):
    evaluation: Evaluation
    message: str
    degraded: bool = False


def _clamp(value: float) -> int:
    if not math.isfinite(value):
        return 0
    return max(0, min(100, int(round(value))))


class EvaluationAggregator:
    """Computes scores deterministically and is the only writer of evaluations."""

    def __init__(
        self,
        repository: EvaluationRepository,
        *,
        proceed_threshold: int = 70,
        reject_threshold: int = 50,
    ) -> None:
        if reject_threshold > proceed_threshold:
            raise ValueError("reject_threshold must not exceed proceed_threshold")
        self._repository = repository
        self.proceed_threshold = proceed_threshold
        self.reject_threshold = reject_threshold
        self._locks: Dict[Tuple[str, int], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def aggregate(
        self,
        analysis: AnalysisData,
        weights: EvaluationWeights,
        problem_solving: Optional[float] = None,
    ) -> ScoreCard:
        results = analysis.matching_results
        pool = [result for result in results if result.required] or results
        technical = _clamp(100 * sum(1 for result in pool if result.match) / len(pool)) if pool else 0
        communication = _clamp(analysis.communication_metrics.average() * 10)
        if problem_solving is not None:
            solving = _clamp(problem_solving)
        elif results:
            solving = _clamp(sum(result.score for result in results) / len(results))
        else:
            solving = 0
        overall = _clamp(
            technical * weights.technical_skills / 100
            + communication * weights.communication / 100
            + solving * weights.problem_solving / 100
        )
        return ScoreCard(technical=technical, communication=communication, problem_solving=solving, overall=overall)

    def recommend(
        self,
        overall: int,
        red_flags: Sequence[RedFlag],
        contradictions: Sequence[str] = (),
    ) -> Recommendation:
        high = [flag for flag in red_flags if flag.severity == "high"]
        unresolved = bool(contradictions) or any(flag.type == "contradiction" for flag in high)
        if overall < self.reject_threshold or (high and unresolved):
            return "reject"
        if overall >= self.proceed_threshold and not high:
            return "proceed"
        return "clarify"

    def build(self, candidate_key: str, vacancy: Vacancy, draft: AnalysisDraft) -> Evaluation:
        card = self.aggregate(draft.analysis_data, vacancy.evaluation_weights, draft.problem_solving_score)
        return Evaluation(
            candidate_key=candidate_key,
            vacancy_id=vacancy.id,
            overall_score=card.overall,
            technical_score=card.technical,
            communication_score=card.communication,
            problem_solving_score=card.problem_solving,
            strengths=draft.strengths,
            gaps=draft.gaps,
            contradictions=draft.contradictions,
            recommendation=self.recommend(card.overall, draft.analysis_data.red_flags, draft.contradictions),
            feedback=draft.feedback or "The evaluation is complete.",
            analysis_data=draft.analysis_data,
        )

    def upsert(self, candidate_key: str, vacancy_id: int, evaluation: Evaluation) -> Evaluation:
        """Store ``evaluation`` for the pair, replacing scores of an existing record."""

        keyed = evaluation.model_copy(update={"candidate_key": candidate_key, "vacancy_id": vacancy_id})
        with self._lock_for(candidate_key, vacancy_id):
            return self._repository.upsert(keyed)

    def find(self, candidate_key: str, vacancy_id: int) -> Optional[Evaluation]:
        return self._repository.find(candidate_key, vacancy_id)

    def _lock_for(self, candidate_key: str, vacancy_id: int) -> threading.Lock:
        key = (candidate_key, vacancy_id)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
        return lock


def neutral_evaluation(candidate_key: str, vacancy_id: int) -> Evaluation:
    """Placeholder used when the model's analysis cannot be read."""

    return Evaluation(
        candidate_key=candidate_key,
        vacancy_id=vacancy_id,
        overall_score=NEUTRAL_SCORE,
        technical_score=NEUTRAL_SCORE,
        communication_score=NEUTRAL_SCORE,
        problem_solving_score=NEUTRAL_SCORE,
        strengths=["Took part in the interview"],
        gaps=["Requires further review"],
        contradictions=[],
        recommendation="clarify",
        feedback="Thank you for taking part in the interview. We will review your application and get back to you.",
    )


def candidate_feedback(evaluation: Evaluation) -> str:
    lines: List[str] = ["Interview results", ""]
    if evaluation.strengths:
        lines.append("Your strengths:")
        lines.extend(f"- {item}" for item in evaluation.strengths)
        lines.append("")
    if evaluation.gaps:
        lines.append("Areas to develop:")
        lines.extend(f"- {item}" for item in evaluation.gaps)
        lines.append("")
    lines.append(f"Feedback: {evaluation.feedback}")
    lines.append("")
    lines.append(CLOSING_LINES[evaluation.recommendation])
    return "\n".join(lines)


class EvaluationService:
    def __init__(
        self,
        history: HistoryStore,
        prompts: PromptResolver,
        generate: Callable[[str], str],
        aggregator: EvaluationAggregator,
        *,
        transcript_limit: Optional[int] = None,
    ) -> None:
        self._history = history
        self._transcript_limit = transcript_limit
        self._prompts = prompts
        self._generate = generate
        self.aggregator = aggregator

    def evaluate(self, candidate_key: str, vacancy: Vacancy) -> EvaluationResult:
        """Analyse the finished interview and store the evaluation.

        Raises ``ModelUnavailableError`` if the model cannot be reached. A
        reply that cannot be parsed yields a neutral ``clarify`` evaluation.
        """

        entries = self._history.history(candidate_key, vacancy.id, limit=self._transcript_limit)
        transcript = "\n\n".join(f"{ROLE_LABELS[entry.sender]}: {entry.text}" for entry in entries)
        prompt = self._prompts.render_named(
            "interview_evaluation",
            {"vacancy_context": vacancy.prompt_context(), "transcript": transcript},
        )
        try:
            with span("evaluation", candidate_key, vacancy_id=vacancy.id, template="interview_evaluation"):
                raw = self._generate(prompt)
        except LlmGatewayError as exc:
            raise ModelUnavailableError(str(exc)) from exc

        draft = parse_analysis(raw)
        degraded = isinstance(draft, ParseError)
        if isinstance(draft, ParseError):
            logger.warning("Unreadable evaluation reply for %s: %s", candidate_key, draft.reason)
            evaluation = neutral_evaluation(candidate_key, vacancy.id)
        else:
            evaluation = self.aggregator.build(candidate_key, vacancy, draft)
        stored = self.aggregator.upsert(candidate_key, vacancy.id, evaluation)
        log_event(
            "evaluation.stored",
            candidate_key,
            vacancy_id=vacancy.id,
            recommendation=stored.recommendation,
            overall=stored.overall_score,
            degraded=degraded,
        )
        return EvaluationResult(evaluation=stored, message=candidate_feedback(stored), degraded=degraded)


__all__ = [
    "CLOSING_LINES",
    "EvaluationAggregator",
    "EvaluationResult",
    "EvaluationService",
    "ScoreCard",
    "candidate_feedback",
    "neutral_evaluation",
]
