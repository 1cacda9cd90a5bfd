from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from config.settings import Settings
from relay.core.memory import SessionStore
from relay.core.quota import RateLimitStore
from relay.relay import ChatRelay
from relay.upstream import GeminiRestClient

from fakes import FakeUpstream


def _body(message="Hello", user_id="user_1", session_id="session_1"):
    return {"message": message, "userId": user_id, "sessionId": session_id}


@pytest.fixture
def settings() -> Settings:
    settings = Settings()
    settings.gemini_api_key = "test-key"
    return settings


@pytest.fixture
def client(settings, relay):
    with TestClient(create_app(settings=settings, relay=relay)) as test_client:
        yield test_client


def test_chat_returns_model_reply(client, sessions):
    resp = client.post("/api/chat", json=_body())

    assert resp.status_code == 200
    assert resp.json() == {"reply": "reply 1"}
    assert [t.role for t in sessions.get_transcript("session_1")] == ["user", "model"]


@pytest.mark.parametrize(
    "body",
    [
        {"message": "hi", "sessionId": "s"},
        {"message": "hi", "userId": "u"},
        {"message": "hi", "userId": "", "sessionId": "s"},
    ],
)
def test_missing_identity_is_a_400(client, upstream, body):
    resp = client.post("/api/chat", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": "User ID and Session ID are required"}
    assert upstream.calls == []


def test_malformed_body_is_a_400(client):
    resp = client.post("/api/chat", content="not json", headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert "error" in resp.json()


def test_fifty_first_message_of_the_day_is_refused(client, upstream, quota):
    for i in range(50):
        assert client.post("/api/chat", json=_body(message=f"q{i}")).status_code == 200

    resp = client.post("/api/chat", json=_body(message="Hello"))

    assert resp.status_code == 429
    assert "50" in resp.json()["reply"]
    assert len(upstream.calls) == 50
    assert quota.usage("user_1") == 50


def test_empty_candidates_are_a_500_and_leave_only_the_user_turn(settings, quota):
    sessions = SessionStore()
    upstream = GeminiRestClient(
        api_key="k",
        model="m",
        http_client=httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        ),
    )
    relay = ChatRelay(quota=quota, sessions=sessions, upstream=upstream)

    with TestClient(create_app(settings=settings, relay=relay)) as client:
        resp = client.post("/api/chat", json=_body())

    assert resp.status_code == 500
    assert resp.json() == {"error": "No response from AI"}
    assert [t.role for t in sessions.get_transcript("session_1")] == ["user"]
    assert quota.usage("user_1") == 0


def test_unexpected_failure_is_a_generic_500(settings, quota, sessions):
    relay = ChatRelay(quota=quota, sessions=sessions, upstream=FakeUpstream(error=KeyError("parts")))

    with TestClient(create_app(settings=settings, relay=relay)) as client:
        resp = client.post("/api/chat", json=_body())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Something went wrong"}


def test_missing_api_key_is_reported(settings):
    settings.gemini_api_key = None
    with TestClient(create_app(settings=settings)) as client:
        resp = client.post("/api/chat", json=_body())

    assert resp.status_code == 500
    assert "GEMINI_API_KEY" in resp.json()["error"]


def test_upstream_is_closed_on_shutdown(settings, relay, upstream):
    with TestClient(create_app(settings=settings, relay=relay)):
        assert not upstream.closed
    assert upstream.closed


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
