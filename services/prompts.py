"""Named prompt templates with a TTL cache and built-in fallbacks."""
from __future__ import annotations

import logging
import re
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from domain.models import PromptTemplate
from storage.sqlite import StoreUnavailableError

from .prompt_defaults import FALLBACK_TEMPLATES, MISSING_TEMPLATE

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{([A-Za-z0-9_.\-]+)\}\}")


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Replace every ``{{key}}`` with ``str(variables[key])``.

    Unknown keys and ``None`` values become empty strings. Substitution is a
    single pass, so placeholders appearing inside substituted values are
    left as literal text.
    """

    def _sub(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, template)


class PromptResolver:
    """Resolve template text by name.

    The cache is filled from ``fetch_active`` (usually
    ``PromptRepository.find_active``) and refreshed in full once it is older
    than ``ttl_seconds``. If a refresh fails the previous contents stay in use
    and the next lookup tries again.
    """

    def __init__(
        self,
        fetch_active: Callable[[], List[PromptTemplate]],
        *,
        ttl_seconds: float = 300.0,
        fallbacks: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_active = fetch_active
        self._ttl = ttl_seconds
        self._fallbacks = dict(FALLBACK_TEMPLATES if fallbacks is None else fallbacks)
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: Dict[str, PromptTemplate] = {}
        self._loaded_at: Optional[float] = None

    def template(self, name: str) -> str:
        cache = self._current()
        prompt = cache.get(name)
        if prompt is None:
            logger.warning("Prompt template not found: %s, using fallback", name)
            return self.fallback(name)
        if not prompt.is_active:
            logger.warning("Prompt template is inactive: %s, using fallback", name)
            return self.fallback(name)
        return prompt.template

    def fallback(self, name: str) -> str:
        return self._fallbacks.get(name, MISSING_TEMPLATE)

    def render(self, template: str, variables: Mapping[str, Any]) -> str:
        return render(template, variables)

    def render_named(self, name: str, variables: Mapping[str, Any]) -> str:
        return render(self.template(name), variables)

    def invalidate(self) -> None:
        """Force a refresh on the next lookup."""

        with self._lock:
            self._loaded_at = None

    def available(self) -> List[str]:
        try:
            return sorted(prompt.name for prompt in self._fetch_active())
        except StoreUnavailableError as exc:
            logger.error("Error fetching available prompts: %s", exc)
            return sorted(self._fallbacks)

    def _current(self) -> Dict[str, PromptTemplate]:
        with self._lock:
            now = self._clock()
            if self._loaded_at is None or now - self._loaded_at >= self._ttl:
                self._refresh(now)
            return self._cache

    def _refresh(self, now: float) -> None:
        try:
            active = self._fetch_active()
        except StoreUnavailableError as exc:
            logger.error("Error refreshing prompt cache, keeping %d cached templates: %s", len(self._cache), exc)
            return
        self._cache = {prompt.name: prompt for prompt in active}
        self._loaded_at = now
        logger.info("Refreshed prompt cache with %d prompts", len(active))


__all__ = ["PromptResolver", "render"]
