from __future__ import annotations  # FastAPI server wiring the interview chat transport

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from config import Settings, load_route, settings
from llm_gateway import TextModel
from services.evaluation import EvaluationAggregator, EvaluationService
from services.history import HistoryStore
from services.interview_flow import InterviewFlow
from services.prompt_defaults import FALLBACK_TEMPLATES
from services.prompts import PromptResolver
from storage.candidates import CandidateRepository
from storage.dialogues import DialogueRepository
from storage.evaluations import EvaluationRepository
from storage.migrate import migrate
from storage.prompts import PromptRepository
from storage.states import InterviewStateRepository
from storage.vacancies import VacancyRepository


logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parent


def _resolve(path_text: str) -> Path:  # Relative config paths are taken from the project root
    path = Path(path_text)
    return path if path.is_absolute() else ROOT / path


def build_flow(cfg: Settings, generate: Optional[Callable[[str], str]] = None) -> InterviewFlow:
    """Bootstrap the schema, seed default prompts and assemble the services.

    Without ``generate`` the model route named by ``cfg.LLM_ROUTE`` is loaded;
    a missing route file or route raises ``ConfigurationError``.
    """

    db_path = cfg.DB_PATH
    if generate is None:
        generate = TextModel(load_route(_resolve(cfg.APP_CONFIG_PATH), cfg.LLM_ROUTE))
    migrate(db_path)
    prompt_repo = PromptRepository(db_path)
    seeded = prompt_repo.seed_defaults(FALLBACK_TEMPLATES)
    if seeded:
        logger.info("Seeded %d default prompt templates", seeded)

    history = HistoryStore(CandidateRepository(db_path), DialogueRepository(db_path))
    prompts = PromptResolver(prompt_repo.find_active, ttl_seconds=cfg.PROMPT_CACHE_TTL_SECONDS)
    aggregator = EvaluationAggregator(
        EvaluationRepository(db_path),
        proceed_threshold=cfg.PROCEED_THRESHOLD,
        reject_threshold=cfg.REJECT_THRESHOLD,
    )
    evaluations = EvaluationService(history, prompts, generate, aggregator, transcript_limit=cfg.HISTORY_LIMIT)
    return InterviewFlow(
        history,
        prompts,
        VacancyRepository(db_path),
        InterviewStateRepository(db_path),
        generate,
        evaluations,
        max_questions=cfg.MAX_QUESTIONS,
        context_messages=cfg.CONTEXT_MESSAGES,
    )


def create_app(flow: Optional[InterviewFlow] = None) -> FastAPI:
    """Create the API; the flow is built on first use unless one is supplied."""

    app = FastAPI(title="Interview Chat API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    guard = threading.Lock()
    holder = {"flow": flow}

    def get_flow() -> InterviewFlow:
        with guard:
            if holder["flow"] is None:
                holder["flow"] = build_flow(settings)
            return holder["flow"]

    app.state.get_flow = get_flow
    app.include_router(router)
    return app


app = create_app()
