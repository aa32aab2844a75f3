"""Observability utilities for the interview orchestration stack."""
from .logger import InterviewEvent, log_event
from .tracing import span

__all__ = ["InterviewEvent", "log_event", "span"]
