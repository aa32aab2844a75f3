from __future__ import annotations

import httpx
import pytest

from config import LlmRoute
from llm_gateway import LlmGatewayError, TextModel, generate, strip_code_fences


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeClient:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, *, json, headers, timeout):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def _route(**overrides):
    data = {"name": "default", "base_url": "http://llm", "model": "m1", "timeout_s": 5}
    data.update(overrides)
    return LlmRoute(**data)


def test_ollama_payload_and_response():
    client = FakeClient(FakeResponse(payload={"response": '{"feedback": "ok"}'}))
    text = generate("Hello", cfg=_route(), client=client)
    assert text == '{"feedback": "ok"}'
    call = client.calls[0]
    assert call["url"] == "http://llm/api/generate"
    assert call["json"] == {"model": "m1", "prompt": "Hello", "stream": False}
    assert call["timeout"] == 5


def test_openai_payload_and_auth_header(monkeypatch):
    monkeypatch.setenv("LLM_KEY", "secret")
    client = FakeClient(FakeResponse(payload={"choices": [{"message": {"content": "hi"}}]}))
    route = _route(provider="openai", endpoint="/chat/completions", api_key_env="LLM_KEY", options={"temperature": 0.2})
    assert TextModel(route, client=client)("Hello") == "hi"
    call = client.calls[0]
    assert call["json"]["messages"] == [{"role": "user", "content": "Hello"}]
    assert call["json"]["temperature"] == 0.2
    assert call["headers"]["Authorization"] == "Bearer secret"


@pytest.mark.parametrize(
    "client",
    [
        FakeClient(error=httpx.ConnectError("refused")),
        FakeClient(error=httpx.ReadTimeout("slow")),
        FakeClient(FakeResponse(status_code=503)),
        FakeClient(FakeResponse(payload=None)),
        FakeClient(FakeResponse(payload={"unexpected": True})),
    ],
)
def test_failures_raise_gateway_error(client):
    with pytest.raises(LlmGatewayError):
        generate("Hello", cfg=_route(sequential=True), client=client)


def test_strip_code_fences():
    assert strip_code_fences("```json\n{\"a\": 1}\n```") == '{"a": 1}'
    assert strip_code_fences("  plain  ") == "plain"
