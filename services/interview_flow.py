"""Per-candidate interview state machine.

Stages move ``selecting_vacancy`` -> ``interviewing`` -> ``completed`` for each
(candidate, vacancy) pair. Each answered question costs exactly one model
call; a failed or unreadable reply leaves the state untouched so the
candidate can simply resend the answer.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from domain.models import (
    Attachment,
    DialogueEntry,
    Evaluation,
    InterviewStage,
    InterviewState,
    MessageType,
    Vacancy,
    utcnow,
)
from llm_gateway import LlmGatewayError
from observability import log_event, span
from storage.sqlite import StoreUnavailableError
from storage.states import InterviewStateRepository
from storage.vacancies import VacancyRepository

from .errors import ModelOutputError, ModelUnavailableError
from .evaluation import EvaluationService
from .history import HistoryStore
from .parsing import ParsedFeedback, ParsedQuestion, ParseError, parse_turn_reply
from .prompts import PromptResolver

logger = logging.getLogger(__name__)

SELECT_VACANCY_FIRST = "Please select a vacancy first. Send /start to see the open positions."
ALREADY_FINISHED = (
    "Thank you, this interview is already finished. Send /start if you would like to apply for another vacancy."
)
RETRY_LATER = "Sorry, I could not process your answer right now. Please send it again."
EMPTY_ANSWER = "I could not read your message. Please type your answer or try sending it again."
VACANCY_NOT_FOUND = "This vacancy is no longer available. Send /start to see the open positions."
NO_VACANCIES = "There are no open vacancies right now. Please check back later."
COMPLETED_FALLBACK = "Thank you for completing the interview! We will review your answers and get back to you."
HISTORY_CLEARED = "Your conversation history has been cleared. Send /start to begin again."
MISSING_FILE_CONTENT = "[The file was uploaded but its content could not be extracted]"
HELP_TEXT = "\n\n".join(
    (
        "I am an HR assistant for conducting interviews and analysing resumes.",
        "Features:\n- Resume upload (PDF, DOC, DOCX, TXT files)\n- Interactive interview for the selected vacancy\n"
        "- Analysis of how you match the vacancy requirements",
        "How to use:\n1. Select a vacancy with /start\n2. Upload your resume or tell us about yourself\n"
        "3. Answer the interview questions",
        "Commands:\n/start - start vacancy selection\n/help - show this help\n/clear - clear conversation history",
    )
)


class InboundMessage(BaseModel):
    external_user_id: str = Field(min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    text: str = ""
    message_type: MessageType = "text"
    transcription: Optional[str] = None
    attachment: Optional[Attachment] = None
    document_text: Optional[str] = None


class TurnError(BaseModel):
    code: str
    retryable: bool
    detail: str = ""


class TurnOutcome(BaseModel):
    reply: str
    stage: InterviewStage = InterviewStage.SELECTING_VACANCY
    vacancy_id: Optional[int] = None
    question_count: int = 0
    completed: bool = False
    vacancies: List[Vacancy] = Field(default_factory=list)
    evaluation: Optional[Evaluation] = None
    error: Optional[TurnError] = None


class InterviewFlow:
    def __init__(
        self,
        history: HistoryStore,
        prompts: PromptResolver,
        vacancies: VacancyRepository,
        states: InterviewStateRepository,
        generate: Callable[[str], str],
        evaluations: EvaluationService,
        *,
        max_questions: int = 5,
        context_messages: int = 10,
    ) -> None:
        self._history = history
        self._prompts = prompts
        self._vacancies = vacancies
        self._states_repo = states
        self._generate = generate
        self._evaluations = evaluations
        self.max_questions = max_questions
        self.context_messages = context_messages
        self._states: Dict[Tuple[str, int], InterviewState] = {}
        self._active: Dict[str, Optional[int]] = {}
        self._maps_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -- public operations --------------------------------------------------------

    def start(self, message: InboundMessage) -> TurnOutcome:
        candidate = self._history.ensure_candidate(
            message.external_user_id, message.first_name, message.last_name, message.username
        )
        key = candidate.external_id
        with self._lock_for(key):
            with self._maps_lock:
                self._active[key] = None
            try:
                vacancies = self._vacancies.list_active()
            except StoreUnavailableError as exc:
                logger.error("Could not list vacancies for %s: %s", key, exc)
                return TurnOutcome(
                    reply=RETRY_LATER,
                    error=TurnError(code="store_unavailable", retryable=True, detail=str(exc)),
                )
            log_event("interview.start", key, stage=InterviewStage.SELECTING_VACANCY.value, vacancies=len(vacancies))
            if not vacancies:
                return TurnOutcome(reply=NO_VACANCIES)
            lines = [f"Hello, {candidate.display_name}! I am the HR assistant. Please choose a vacancy:"]
            lines.extend(f"{vacancy.id}. {vacancy.title}" for vacancy in vacancies)
            return TurnOutcome(reply="\n".join(lines), vacancies=vacancies)

    def select_vacancy(self, message: InboundMessage, vacancy_id: int) -> TurnOutcome:
        candidate = self._history.ensure_candidate(
            message.external_user_id, message.first_name, message.last_name, message.username
        )
        key = candidate.external_id
        with self._lock_for(key):
            try:
                vacancy = self._vacancies.get(vacancy_id)
            except StoreUnavailableError as exc:
                logger.error("Could not load vacancy %s: %s", vacancy_id, exc)
                return TurnOutcome(
                    reply=RETRY_LATER,
                    error=TurnError(code="store_unavailable", retryable=True, detail=str(exc)),
                )
            if vacancy is None or vacancy.status != "active":
                logger.warning("Vacancy %s not found for %s", vacancy_id, key)
                return TurnOutcome(
                    reply=VACANCY_NOT_FOUND,
                    error=TurnError(code="vacancy_not_found", retryable=False),
                )

            state = self._load_state(key, vacancy_id)
            with self._maps_lock:
                self._active[key] = vacancy_id
            if state is not None and state.stage == InterviewStage.COMPLETED:
                return self._outcome(ALREADY_FINISHED, state)
            if state is not None and state.stage == InterviewStage.INTERVIEWING:
                log_event(
                    "interview.resume", key, vacancy_id=vacancy_id, stage=state.stage.value, question=state.question_count
                )
                return self._outcome(f'Welcome back! Let\'s continue the interview for "{vacancy.title}".', state)

            state = InterviewState(candidate_key=key, vacancy_id=vacancy_id, stage=InterviewStage.INTERVIEWING)
            self._history.append(
                key,
                DialogueEntry(
                    candidate_key=key,
                    message_type="system",
                    sender="bot",
                    content=f"Vacancy selected: {vacancy.title}",
                ),
                vacancy_id,
            )
            greeting = self._prompts.render_named(
                "vacancy_greeting", {"title": vacancy.title, "description": vacancy.description}
            )
            self._history.append(key, DialogueEntry(candidate_key=key, sender="bot", content=greeting), vacancy_id)
            self._store_state(state)
            log_event("interview.vacancy_selected", key, stage=state.stage.value, vacancy_id=vacancy_id)
            return self._outcome(greeting, state)

    def handle_message(self, message: InboundMessage) -> TurnOutcome:
        """Process one candidate answer."""

        candidate = self._history.ensure_candidate(
            message.external_user_id, message.first_name, message.last_name, message.username
        )
        key = candidate.external_id
        with self._lock_for(key):
            state = self._current_state(key)
            if state is None or state.stage == InterviewStage.SELECTING_VACANCY:
                return TurnOutcome(reply=SELECT_VACANCY_FIRST)
            if state.stage == InterviewStage.COMPLETED:
                log_event(
                    "turn.ignored",
                    key,
                    vacancy_id=state.vacancy_id,
                    stage=state.stage.value,
                    question=state.question_count,
                )
                return self._outcome(ALREADY_FINISHED, state)

            answer = self._answer_text(message)
            if not answer:
                return self._outcome(EMPTY_ANSWER, state, TurnError(code="empty_message", retryable=True))

            vacancy = self._vacancy_or_none(state.vacancy_id)
            next_index = state.question_count + 1
            try:
                reply = self._ask_model(key, state, vacancy, message, answer, next_index)
            except ModelUnavailableError as exc:
                log_event(
                    "turn.failed",
                    key,
                    vacancy_id=state.vacancy_id,
                    stage=state.stage.value,
                    question=next_index,
                    level=logging.WARNING,
                    outcome="model_unavailable",
                )
                return self._outcome(
                    RETRY_LATER, state, TurnError(code="model_unavailable", retryable=True, detail=str(exc))
                )
            except ModelOutputError as exc:
                log_event(
                    "turn.failed",
                    key,
                    vacancy_id=state.vacancy_id,
                    stage=state.stage.value,
                    question=next_index,
                    level=logging.WARNING,
                    outcome="model_output",
                )
                return self._outcome(
                    RETRY_LATER, state, TurnError(code="model_output", retryable=True, detail=exc.reason)
                )

            final = next_index >= self.max_questions or isinstance(reply, ParsedFeedback)
            if final:
                reply_text = reply.feedback or COMPLETED_FALLBACK
            else:
                reply_text = " ".join(part for part in (reply.feedback, reply.question) if part)

            results = [
                self._history.append(
                    key,
                    DialogueEntry(
                        candidate_key=key,
                        message_type=message.message_type,
                        sender="candidate",
                        content=message.text or (message.attachment.file_name if message.attachment else answer),
                        transcription=message.transcription,
                        attachment=message.attachment,
                    ),
                    state.vacancy_id,
                ),
                self._history.append(
                    key, DialogueEntry(candidate_key=key, sender="bot", content=reply_text), state.vacancy_id
                ),
            ]
            state = state.model_copy(
                update={
                    "question_count": next_index,
                    "last_activity": utcnow(),
                    "stage": InterviewStage.COMPLETED if final else InterviewStage.INTERVIEWING,
                }
            )
            self._store_state(state)
            log_event(
                "turn.done",
                key,
                vacancy_id=state.vacancy_id,
                stage=state.stage.value,
                question=next_index,
                outcome="completed" if final else "next_question",
                degraded=not all(result.persisted for result in results),
            )
            if not final:
                return self._outcome(reply_text, state)

            evaluation = None
            closing = COMPLETED_FALLBACK
            if vacancy is not None:
                try:
                    result = self._evaluations.evaluate(key, vacancy)
                    evaluation = result.evaluation
                    closing = result.message
                except (ModelUnavailableError, StoreUnavailableError) as exc:
                    logger.error("Evaluation failed for %s vacancy=%s: %s", key, state.vacancy_id, exc)
            text = reply_text if closing == reply_text else f"{reply_text}\n\n{closing}"
            outcome = self._outcome(text, state)
            outcome.evaluation = evaluation
            return outcome

    def clear(self, message: InboundMessage) -> TurnOutcome:
        key = message.external_user_id
        with self._lock_for(key):
            self._history.clear(key)
            with self._maps_lock:
                self._active.pop(key, None)
                for pair in [pair for pair in self._states if pair[0] == key]:
                    self._states.pop(pair)
            try:
                self._states_repo.delete(key)
            except StoreUnavailableError as exc:
                logger.warning("Stored interview states for %s not removed: %s", key, exc)
            log_event("interview.cleared", key)
            return TurnOutcome(reply=HISTORY_CLEARED)

    def help(self, message: InboundMessage) -> TurnOutcome:
        log_event("interview.help", message.external_user_id)
        return TurnOutcome(reply=HELP_TEXT)

    def state(self, external_user_id: str) -> Optional[InterviewState]:
        with self._lock_for(external_user_id):
            return self._current_state(external_user_id)

    def evaluation(self, external_user_id: str, vacancy_id: int) -> Optional[Evaluation]:
        return self._evaluations.aggregator.find(external_user_id, vacancy_id)

    # -- helpers ------------------------------------------------------------------

    def _ask_model(
        self,
        key: str,
        state: InterviewState,
        vacancy: Optional[Vacancy],
        message: InboundMessage,
        answer: str,
        next_index: int,
    ) -> ParsedQuestion | ParsedFeedback:
        vacancy_context = vacancy.prompt_context() if vacancy else ""
        if message.message_type == "document":
            name = "cv_analysis"
            variables = {
                "vacancy_context": vacancy_context,
                "file_name": message.attachment.file_name if message.attachment else "",
                "file_content": message.document_text or MISSING_FILE_CONTENT,
            }
        else:
            name = "interview_chat"
            variables = {
                "vacancy_context": vacancy_context,
                "conversation_context": self._history.context_summary(
                    key, self.context_messages, state.vacancy_id
                ),
                "question_count": next_index,
                "max_questions": self.max_questions,
                "candidate_message": answer,
            }
        prompt = self._prompts.render_named(name, variables)
        try:
            with span("model_call", key, vacancy_id=state.vacancy_id, template=name, question=next_index):
                raw = self._generate(prompt)
        except LlmGatewayError as exc:
            raise ModelUnavailableError(str(exc)) from exc
        reply = parse_turn_reply(raw)
        if isinstance(reply, ParseError):
            logger.warning("Unreadable model reply for %s: %s", key, reply.reason)
            raise ModelOutputError(reply.reason, reply.raw)
        return reply

    @staticmethod
    def _answer_text(message: InboundMessage) -> str:
        if message.message_type == "audio":
            return (message.transcription or message.text).strip()
        if message.message_type == "document":
            fallback = message.attachment.file_name if message.attachment else ""
            return (message.document_text or message.text or fallback).strip()
        return message.text.strip()

    def _vacancy_or_none(self, vacancy_id: Optional[int]) -> Optional[Vacancy]:
        if vacancy_id is None:
            return None
        try:
            return self._vacancies.get(vacancy_id)
        except StoreUnavailableError as exc:
            logger.error("Error loading vacancy %s for prompt context: %s", vacancy_id, exc)
            return None

    def _current_state(self, key: str) -> Optional[InterviewState]:
        with self._maps_lock:
            if key in self._active:
                vacancy_id = self._active[key]
                return None if vacancy_id is None else self._states.get((key, vacancy_id))
        try:
            stored = self._states_repo.latest(key)
        except StoreUnavailableError as exc:
            logger.warning("Interview state for %s unavailable: %s", key, exc)
            return None
        if stored is None:
            return None
        with self._maps_lock:
            self._active.setdefault(key, stored.vacancy_id)
            self._states.setdefault((key, stored.vacancy_id), stored)
            return self._states[(key, stored.vacancy_id)]

    def _load_state(self, key: str, vacancy_id: int) -> Optional[InterviewState]:
        with self._maps_lock:
            state = self._states.get((key, vacancy_id))
        if state is not None:
            return state
        try:
            stored = self._states_repo.get(key, vacancy_id)
        except StoreUnavailableError as exc:
            logger.warning("Interview state for %s/%s unavailable: %s", key, vacancy_id, exc)
            return None
        if stored is not None:
            with self._maps_lock:
                self._states[(key, vacancy_id)] = stored
        return stored

    def _store_state(self, state: InterviewState) -> None:
        with self._maps_lock:
            self._states[(state.candidate_key, state.vacancy_id)] = state
        try:
            self._states_repo.save(state)
        except StoreUnavailableError as exc:
            logger.warning("Interview state for %s kept in memory only: %s", state.candidate_key, exc)

    def _outcome(self, reply: str, state: InterviewState, error: Optional[TurnError] = None) -> TurnOutcome:
        return TurnOutcome(
            reply=reply,
            stage=state.stage,
            vacancy_id=state.vacancy_id,
            question_count=state.question_count,
            completed=state.stage == InterviewStage.COMPLETED,
            error=error,
        )

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
        return lock


__all__ = ["InboundMessage", "InterviewFlow", "TurnError", "TurnOutcome"]
