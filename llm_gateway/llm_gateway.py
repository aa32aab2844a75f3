from __future__ import annotations  # LLM request gateway module

import logging
import os
import threading
from typing import Any, Dict, Optional, Protocol

import httpx

from config import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


_MODEL_LOCKS: Dict[str, threading.Lock] = {}
_MODEL_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Transport, status or payload failure; callers may retry
    pass


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _MODEL_LOCKS_GUARD:
        lock = _MODEL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MODEL_LOCKS[key] = lock
    return lock


def generate(prompt: str, *, cfg: LlmRoute, client: Optional[HttpClient] = None) -> str:
    """Send ``prompt`` to the configured route and return the raw reply text.

    The reply is not parsed here; callers validate it. Transport errors,
    timeouts, HTTP error statuses and payloads without text all raise
    ``LlmGatewayError``.
    """

    def _execute() -> str:
        payload = _build_payload(cfg, prompt)
        headers = {"Content-Type": "application/json"}
        if cfg.api_key_env:
            api_key = os.getenv(cfg.api_key_env)
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
        headers.update(cfg.extra_headers)
        logger.info(
            "LLM request send route=%s provider=%s model=%s preview=%s",
            cfg.name,
            cfg.provider,
            cfg.model,
            _preview(prompt),
        )
        try:
            response = _post(f"{cfg.base_url}{cfg.endpoint}", payload, headers, cfg.timeout_s, client)
        except httpx.TimeoutException as exc:
            logger.error("LLM timeout after %.1fs route=%s", cfg.timeout_s, cfg.name)
            raise LlmGatewayError("LLM request timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("LLM transport failure: %s", exc)
            raise LlmGatewayError("LLM transport failed") from exc
        if response.status_code >= 400:
            logger.error("LLM error status: %s", response.status_code)
            raise LlmGatewayError(f"LLM returned status {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Invalid JSON payload from LLM: %s", exc)
            raise LlmGatewayError("LLM payload was not JSON") from exc
        content = _extract_content(data)
        logger.info("LLM request done route=%s chars=%d", cfg.name, len(content))
        return content

    if cfg.sequential:
        with _lock_for(cfg):
            return _execute()
    return _execute()


class TextModel:  # Callable ``generate(prompt) -> text`` bound to one route
    def __init__(self, cfg: LlmRoute, client: Optional[HttpClient] = None) -> None:
        self.cfg = cfg
        self._client = client

    def __call__(self, prompt: str) -> str:
        return generate(prompt, cfg=self.cfg, client=self._client)


def _build_payload(cfg: LlmRoute, prompt: str) -> Dict[str, Any]:  # Provider-specific request body
    if cfg.provider == "openai":
        payload: Dict[str, Any] = {
            "model": cfg.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        payload.update(cfg.options)
        return payload
    payload = {"model": cfg.model, "prompt": prompt, "stream": False}
    if cfg.options:
        payload["options"] = dict(cfg.options)
    return payload


def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float, client: Optional[HttpClient]) -> HttpResponse:  # Dispatch HTTP request
    if client is not None:
        return client.post(url, json=payload, headers=headers, timeout=timeout)
    with httpx.Client(timeout=timeout) as http_client:
        response = http_client.post(url, json=payload, headers=headers)
        response.read()
        return response


def _preview(prompt: str) -> str:  # First non-empty line, truncated for logging
    for line in prompt.splitlines():
        text = line.strip()
        if text:
            return text if len(text) <= 120 else text[:117] + "..."
    return ""


def _extract_content(data: Any) -> str:  # Extract reply text from Ollama or chat-completions payloads
    if isinstance(data, dict):
        if isinstance(data.get("response"), str):
            return data["response"]
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")


def strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines:
            lines = lines[1:]
            while lines and lines[0].strip() == "":
                lines = lines[1:]
            while lines and lines[-1].strip() == "":
                lines = lines[:-1]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text
