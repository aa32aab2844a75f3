"""FastAPI routes feeding chat messages into the interview flow."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from api.schemas import ChatResp, ChatUser, MessageReq, SelectVacancyReq, StateResp
from config import ConfigurationError
from domain.models import Evaluation
from services.interview_flow import InterviewFlow
from storage.sqlite import StoreUnavailableError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat")


def _flow(request: Request) -> InterviewFlow:
    try:
        return request.app.state.get_flow()
    except ConfigurationError as exc:
        logger.error("Interview flow is not configured: %s", exc)
        raise HTTPException(status_code=500, detail=f"configuration_error: {exc}") from exc


@router.post("/start", response_model=ChatResp)
def start(req: ChatUser, request: Request) -> ChatResp:
    return ChatResp.from_outcome(_flow(request).start(req.as_message()))


@router.post("/vacancy", response_model=ChatResp)
def select_vacancy(req: SelectVacancyReq, request: Request) -> ChatResp:
    user = ChatUser(**req.model_dump(exclude={"vacancy_id"}))
    return ChatResp.from_outcome(_flow(request).select_vacancy(user.as_message(), req.vacancy_id))


@router.post("/message", response_model=ChatResp)
def message(req: MessageReq, request: Request) -> ChatResp:
    return ChatResp.from_outcome(_flow(request).handle_message(req))


@router.post("/clear", response_model=ChatResp)
def clear(req: ChatUser, request: Request) -> ChatResp:
    return ChatResp.from_outcome(_flow(request).clear(req.as_message()))


@router.post("/help", response_model=ChatResp)
def help_message(req: ChatUser, request: Request) -> ChatResp:
    return ChatResp.from_outcome(_flow(request).help(req.as_message()))


@router.get("/{external_user_id}/state", response_model=StateResp)
def interview_state(external_user_id: str, request: Request) -> StateResp:
    flow = _flow(request)
    state = flow.state(external_user_id)
    if state is None:
        raise HTTPException(status_code=404, detail="no interview in progress")
    return StateResp(
        external_user_id=external_user_id,
        stage=state.stage,
        vacancy_id=state.vacancy_id,
        question_count=state.question_count,
        completion_percentage=state.completion_percentage(flow.max_questions),
    )


@router.get("/{external_user_id}/evaluations/{vacancy_id}", response_model=Evaluation)
def evaluation(external_user_id: str, vacancy_id: int, request: Request) -> Evaluation:
    try:
        found = _flow(request).evaluation(external_user_id, vacancy_id)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail="store unavailable") from exc
    if found is None:
        raise HTTPException(status_code=404, detail="evaluation not found")
    return found
