"""Integration tests for the Session API.

Runs against the mock avatar and mock assistant backends:
- Snapshot retrieval
- Start / end lifecycle
- Staged input and submission in both speak modes
- Voice chat toggling
- Browser-reported stream disconnects
"""

import pytest
from fastapi.testclient import TestClient


def start(client: TestClient) -> dict:
    response = client.post("/session/start")
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    return data


def spoken(client: TestClient) -> list[str]:
    from src.api.routes.session import get_orchestrator

    return get_orchestrator().avatar.provider.spoken


class TestSnapshot:
    def test_idle_snapshot(self, client: TestClient):
        response = client.get("/session")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "idle"
        assert data["session_id"] is None
        assert data["voice_chat_active"] is False
        assert data["mode"] == "assistant"
        assert data["assistant_available"] is True
        assert data["stream"] is None
        assert data["controls"] == {
            "start": True,
            "end": False,
            "submit": False,
            "voice": False,
        }


class TestSessionLifecycle:
    def test_start_session(self, client: TestClient):
        data = start(client)

        session = data["session"]
        assert session["state"] == "active"
        assert session["session_id"].startswith("mock-")
        assert session["generation"] == 1
        assert session["stream"]["playing"] is True
        assert session["controls"] == {
            "start": False,
            "end": True,
            "submit": False,
            "voice": True,
        }

    def test_start_twice_rejected(self, client: TestClient):
        start(client)

        response = client.post("/session/start")

        data = response.json()
        assert response.status_code == 200
        assert data["ok"] is False
        assert data["notice"] == "A session is already active"
        assert data["session"]["state"] == "active"

    def test_end_session(self, client: TestClient):
        start(client)

        response = client.post("/session/end")

        data = response.json()
        assert data["ok"] is True
        assert data["session"]["state"] == "idle"
        assert data["session"]["session_id"] is None
        assert data["session"]["stream"] is None
        assert data["session"]["generation"] == 2

    def test_end_without_session(self, client: TestClient):
        response = client.post("/session/end")

        data = response.json()
        assert response.status_code == 200
        assert data["ok"] is False
        assert data["notice"] == "No active session"


class TestSubmit:
    def test_staged_input_through_assistant(self, client: TestClient):
        start(client)

        staged = client.put("/session/input", json={"text": "hi"})
        assert staged.json()["pending_input"] == "hi"
        assert staged.json()["controls"]["submit"] is True

        response = client.post("/session/submit", json={})

        data = response.json()
        assert data["ok"] is True
        assert data["reply"] == "Hi there! What can I do for you?"
        assert data["session"]["pending_input"] == ""
        assert spoken(client) == ["Hi there! What can I do for you?"]

    def test_direct_mode_speaks_verbatim(self, client: TestClient):
        start(client)

        response = client.post("/session/submit", json={"text": "Read this aloud", "mode": "direct"})

        data = response.json()
        assert data["ok"] is True
        assert data["reply"] == "Read this aloud"
        assert spoken(client) == ["Read this aloud"]

    def test_submit_without_session(self, client: TestClient):
        response = client.post("/session/submit", json={"text": "hello"})

        data = response.json()
        assert data["ok"] is False
        assert data["notice"] == "Start a session first"

    def test_blank_submit_rejected(self, client: TestClient):
        start(client)

        response = client.post("/session/submit", json={"text": "   "})

        data = response.json()
        assert data["ok"] is False
        assert data["notice"] == "Nothing to send"
        assert spoken(client) == []

    def test_invalid_mode(self, client: TestClient):
        response = client.post("/session/submit", json={"text": "hi", "mode": "shout"})
        assert response.status_code == 422

    def test_input_too_long(self, client: TestClient):
        response = client.put("/session/input", json={"text": "x" * 4001})
        assert response.status_code == 422


class TestVoiceChat:
    def test_toggle_on_and_off(self, client: TestClient):
        start(client)

        first = client.post("/session/voice").json()
        assert first["ok"] is True
        assert first["session"]["voice_chat_active"] is True

        second = client.post("/session/voice").json()
        assert second["ok"] is True
        assert second["session"]["voice_chat_active"] is False

    def test_toggle_without_session_is_noop(self, client: TestClient):
        response = client.post("/session/voice")

        data = response.json()
        assert data["ok"] is False
        assert data["notice"] is None
        assert data["session"]["voice_chat_active"] is False


class TestStreamDisconnected:
    def test_disconnect_returns_to_idle(self, client: TestClient):
        start(client)
        client.post("/session/voice")

        response = client.post("/session/stream-disconnected")

        data = response.json()
        assert data["dispatched"] is True
        assert data["session"]["state"] == "idle"
        assert data["session"]["session_id"] is None
        assert data["session"]["voice_chat_active"] is False
        assert data["session"]["notice"] == "Avatar stream disconnected"

    def test_disconnect_without_session(self, client: TestClient):
        response = client.post("/session/stream-disconnected")

        data = response.json()
        assert data["dispatched"] is False
        assert data["session"]["state"] == "idle"

    def test_restart_after_disconnect(self, client: TestClient):
        start(client)
        client.post("/session/stream-disconnected")

        data = start(client)

        assert data["session"]["state"] == "active"
        assert data["session"]["generation"] == 3


class TestRequestId:
    def test_request_id_echoed(self, client: TestClient):
        response = client.get("/session", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client: TestClient):
        response = client.get("/session")
        assert len(response.headers["X-Request-ID"]) == 32


class TestUi:
    def test_index_served(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "/session/events" in response.text
