"""Exception types raised by the interview services."""
from __future__ import annotations

from llm_gateway import LlmGatewayError
from storage.sqlite import StoreUnavailableError


class UnknownCandidateError(LookupError):
    """An entry referenced a candidate that was never registered."""

    def __init__(self, candidate_key: str) -> None:
        super().__init__(f"unknown candidate: {candidate_key}")
        self.candidate_key = candidate_key


class ModelUnavailableError(RuntimeError):
    """The model endpoint failed or timed out; the turn can be retried."""


class ModelOutputError(ValueError):
    """The model replied with content that does not match the expected shape."""

    def __init__(self, reason: str, raw: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


__all__ = [
    "LlmGatewayError",
    "ModelOutputError",
    "ModelUnavailableError",
    "StoreUnavailableError",
    "UnknownCandidateError",
]
