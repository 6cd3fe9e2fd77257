import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fakes import FakeLLMClient, FakeRAGClient
from server.routers.ChatRouter import router as chat_router

HEADERS = {"X-Api-Key": "secret"}


def _reply(prompt: str) -> str:
    if prompt.startswith("Analyze this user message"):
        return json.dumps({"primary": "career", "entities": ["career"], "urgency": "high"})
    return "Look at junior data analyst roles."


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline(
        llm_clients=[FakeLLMClient("gemini", reply=_reply)],
        rag_client=FakeRAGClient(),
    )


@pytest.fixture
def client(pipeline, helper_config, monkeypatch) -> TestClient:
    monkeypatch.setenv("API_SERVER_API_KEY", "secret")
    app = FastAPI()
    app.include_router(chat_router)
    app.state.helper_config = helper_config
    app.state.chat_service = pipeline.chat_service
    app.state.session_manager = pipeline.session_manager
    return TestClient(app)


def test_missing_or_wrong_api_key_is_rejected(client):
    assert client.post("/chat/session/start", json={"user_id": "u"}).status_code == 422
    assert client.post("/chat/session/start", json={"user_id": "u"}, headers={"X-Api-Key": "nope"}).status_code == 401


def test_message_round_trip(client, pipeline):
    start = client.post("/chat/session/start", json={"user_id": "user-1"}, headers=HEADERS)
    assert start.status_code == 200
    session_id = start.json()["session_id"]

    answer = client.post(
        "/chat/message",
        json={"user_id": "user-1", "session_id": session_id, "message": "Which jobs fit me?"},
        headers=HEADERS,
    )

    assert answer.status_code == 200
    body = answer.json()
    assert body["response"] == "Look at junior data analyst roles."
    assert body["is_fallback"] is False
    assert body["session_id"] == session_id
    assert len(body["follow_up_suggestions"]) == 3
    assert body["metadata"]["provider"] == "gemini"

    history = client.get(f"/chat/history/{session_id}", headers=HEADERS).json()
    assert history["total"] == 2
    assert [turn["role"] for turn in history["turns"]] == ["user", "assistant"]


def test_blank_message_is_a_bad_request(client):
    response = client.post(
        "/chat/message",
        json={"user_id": "u", "session_id": "s", "message": "   "},
        headers=HEADERS,
    )
    assert response.status_code == 400


def test_end_unknown_session_is_404(client):
    response = client.post("/chat/session/end", json={"session_id": "missing"}, headers=HEADERS)
    assert response.status_code == 404


def test_end_session_returns_summary(client):
    session_id = client.post("/chat/session/start", json={"user_id": "u"}, headers=HEADERS).json()["session_id"]

    response = client.post("/chat/session/end", json={"session_id": session_id}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["summary"] == "No messages found in this session."


def test_sessions_and_suggestions(client):
    client.post("/chat/session/start", json={"user_id": "u"}, headers=HEADERS)

    sessions = client.get("/chat/sessions/u", headers=HEADERS).json()
    suggestions = client.get("/chat/suggestions/u", params={"limit": 2}, headers=HEADERS).json()

    assert sessions["total"] == 1
    assert len(suggestions["suggestions"]) == 2


def test_message_without_session_starts_one(client, pipeline):
    answer = client.post("/chat/message", json={"user_id": "user-1", "message": "Which jobs fit me?"}, headers=HEADERS)

    assert answer.status_code == 200
    session_id = answer.json()["session_id"]
    assert pipeline.store_client.sessions[session_id]["user_id"] == "user-1"
    assert client.get(f"/chat/history/{session_id}", headers=HEADERS).json()["total"] == 2


def test_message_to_unknown_session_is_404(client, pipeline):
    response = client.post(
        "/chat/message",
        json={"user_id": "user-1", "session_id": "no-such-session", "message": "Hello"},
        headers=HEADERS,
    )

    assert response.status_code == 404
    assert pipeline.store_client.turns == []


def test_message_to_ended_session_is_409(client, pipeline):
    session_id = client.post("/chat/session/start", json={"user_id": "user-1"}, headers=HEADERS).json()["session_id"]
    client.post("/chat/session/end", json={"session_id": session_id}, headers=HEADERS)

    response = client.post(
        "/chat/message",
        json={"user_id": "user-1", "session_id": session_id, "message": "One more thing"},
        headers=HEADERS,
    )

    assert response.status_code == 409
    assert pipeline.store_client.turns == []
