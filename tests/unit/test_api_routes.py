from __future__ import annotations

import json

from fastapi.testclient import TestClient

from api_server import create_app
from config import ConfigurationError


def _reply(feedback="Noted.", question="And then?"):
    return json.dumps({"feedback": feedback, "next_question": question})


def _client(make_flow, generate, **overrides) -> TestClient:
    return TestClient(create_app(make_flow(generate, **overrides)))


def test_chat_cycle_over_http(make_flow, vacancy, scripted_model):
    client = _client(make_flow, scripted_model(default=_reply()), MAX_QUESTIONS=3)
    user = {"external_user_id": "tg-1", "first_name": "Ann"}

    started = client.post("/api/chat/start", json=user).json()
    assert started["stage"] == "selecting_vacancy"
    assert started["vacancies"] == [{"id": vacancy.id, "title": "Backend Engineer"}]

    selected = client.post("/api/chat/vacancy", json={**user, "vacancy_id": vacancy.id}).json()
    assert selected["stage"] == "interviewing"

    answered = client.post("/api/chat/message", json={**user, "text": "I write Python."}).json()
    assert answered["reply"] == "Noted. And then?"
    assert answered["question_count"] == 1

    state = client.get("/api/chat/tg-1/state").json()
    assert state["completion_percentage"] == 33

    assert client.get(f"/api/chat/tg-1/evaluations/{vacancy.id}").status_code == 404
    cleared = client.post("/api/chat/clear", json=user).json()
    assert "cleared" in cleared["reply"]
    assert client.get("/api/chat/tg-1/state").status_code == 404


def test_recoverable_error_is_returned_in_body(make_flow, vacancy, scripted_model):
    client = _client(make_flow, scripted_model(default="no json here"))
    user = {"external_user_id": "tg-2"}
    client.post("/api/chat/vacancy", json={**user, "vacancy_id": vacancy.id})
    resp = client.post("/api/chat/message", json={**user, "text": "answer"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["error"]["code"] == "model_output"
    assert body["error"]["retryable"] is True
    assert body["question_count"] == 0


def test_invalid_payload_is_rejected(make_flow, scripted_model):
    client = _client(make_flow, scripted_model(default=_reply()))
    assert client.post("/api/chat/message", json={"external_user_id": ""}).status_code == 422


def test_missing_model_configuration_is_reported(monkeypatch):
    import api_server

    def _fail(cfg, generate=None):
        raise ConfigurationError("Model route 'default' is not configured")

    monkeypatch.setattr(api_server, "build_flow", _fail)
    client = TestClient(api_server.create_app())
    resp = client.post("/api/chat/start", json={"external_user_id": "x"})
    assert resp.status_code == 500
    assert resp.json()["detail"].startswith("configuration_error")


def test_help_lists_commands(make_flow, scripted_model):
    client = _client(make_flow, scripted_model(default=_reply()))
    body = client.post("/api/chat/help", json={"external_user_id": "tg-9"}).json()
    assert "/start" in body["reply"]
    assert "/clear" in body["reply"]
    assert body["error"] is None
