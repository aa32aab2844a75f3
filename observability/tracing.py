"""Timing spans around model calls and other slow steps of a turn."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

from .logger import log_event


@contextmanager
def span(name: str, candidate: str, **fields: Any) -> Iterator[None]:
    """Log how long the block took and whether it raised."""

    start = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        level = logging.INFO if outcome == "ok" else logging.WARNING
        log_event("span", candidate, level=level, name=name, ms=elapsed_ms, outcome=outcome, **fields)


__all__ = ["span"]
