"""Tests for the HTTP API (TestClient, service injected through dependency_overrides)."""
from __future__ import annotations

import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from voice_queue.api.dependencies import get_speech_service
from voice_queue.core.config import Settings
from voice_queue.main import create_app
from voice_queue.services.speech_service import SpeechService
from voice_queue.speech.usage_registry import SharedUsageRegistry
from voice_queue.speech.voicevox import VoicevoxClient

SPEAKERS = [{"name": "ずんだもん", "styles": [{"name": "ノーマル", "id": 3}, {"name": "あまあま", "id": 1}]}]


class FakePlayer:
    def __init__(self):
        self.played = []

    async def play(self, data: bytes) -> None:
        self.played.append(data)

    async def drain(self) -> None:
        return None


def engine(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/audio_query":
        return httpx.Response(200, json={
            "speedScale": 1.0,
            "speaker": int(request.url.params["speaker"]),
            "text": request.url.params["text"],
        })
    if path == "/synthesis":
        return httpx.Response(200, content=b"RIFF" + request.content)
    if path == "/speakers":
        return httpx.Response(200, json=SPEAKERS)
    return httpx.Response(404)


def broken_engine(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503)


def _service(state_dir, handler=engine, raw=None) -> SpeechService:
    return SpeechService(
        Settings(raw=raw or {}),
        client=VoicevoxClient("http://engine", transport=httpx.MockTransport(handler)),
        player=FakePlayer(),
        registry=SharedUsageRegistry(state_dir=state_dir, retry_delay=0.01),
    )


@pytest.fixture
def service(isolated_env):
    return _service(isolated_env)


@pytest.fixture
def client(service):
    app = create_app()
    app.dependency_overrides[get_speech_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
        _wait_for(lambda: not service.status().is_executing)


def _played(service) -> list:
    """Synthesis queries the fake engine echoed back, in play order."""
    return [json.loads(p[len(b"RIFF"):]) for p in service._player.played]


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestSay:

    def test_say_queues_and_plays(self, client, service):
        resp = client.post("/v1/say", json={"text": "こんにちは", "speed": 1.2})
        assert resp.status_code == 200
        body = resp.json()
        assert body["ok"] is True
        assert body["pending"] == 0

        assert _wait_for(lambda: len(service._player.played) == 1)
        assert _played(service)[0]["speedScale"] == 1.2

    def test_say_uses_default_voice(self, client, service):
        client.post("/v1/say", json={"text": "a"})
        assert _wait_for(lambda: len(service._player.played) == 1)
        assert _played(service)[0]["speaker"] == 47
        assert _played(service)[0]["speedScale"] == 1.0

    def test_say_plays_in_order(self, client, service):
        for text in ("one", "two", "three"):
            assert client.post("/v1/say", json={"text": text, "voice_id": 3}).status_code == 200
        assert _wait_for(lambda: len(service._player.played) == 3)
        assert [q["text"] for q in _played(service)] == ["one", "two", "three"]
        assert {q["speaker"] for q in _played(service)} == {3}

    @pytest.mark.parametrize("payload", [
        {"text": ""},
        {"text": "x", "speed": 2.5},
        {"text": "x", "speed": 0.4},
        {"text": "x", "voice_id": -1},
        {},
    ])
    def test_invalid_requests_rejected(self, client, payload):
        assert client.post("/v1/say", json=payload).status_code == 422

    def test_blank_text_rejected_by_service(self, client):
        resp = client.post("/v1/say", json={"text": "   "})
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_INPUT"


class TestQueue:

    def test_status_shape(self, client):
        body = client.get("/v1/queue").json()
        assert body == {"pending_count": 0, "is_executing": False, "current_task": None}

    def test_clear(self, client):
        resp = client.delete("/v1/queue")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "dropped": 0}


class TestVoices:

    def test_list_voices(self, client):
        body = client.get("/v1/voices").json()
        assert body == [
            {"character": "ずんだもん", "name": "ノーマル", "id": 3},
            {"character": "ずんだもん", "name": "あまあま", "id": 1},
        ]

    def test_list_voices_backend_down(self, isolated_env):
        service = _service(isolated_env, handler=broken_engine)
        app = create_app()
        app.dependency_overrides[get_speech_service] = lambda: service
        with TestClient(app) as test_client:
            resp = test_client.get("/v1/voices")
        assert resp.status_code == 502
        body = resp.json()
        assert body["ok"] is False
        assert body["error"] == "BACKEND_UNAVAILABLE"

    def test_voices_in_use_sees_other_process(self, client, service, isolated_env):
        other = SharedUsageRegistry(state_dir=isolated_env)
        other.add_usage(9)

        body = client.get("/v1/voices/in-use").json()
        assert body["voice_ids"] == [9]
        assert body["client_id"] == service.registry.client_id

    def test_session_voice(self, client, service):
        body = client.get("/v1/session").json()
        assert body["voice_id"] in {1, 3}
        assert body["client_id"] == service.registry.client_id


class TestOperational:

    def test_health(self, client, service):
        body = client.get("/health").json()
        assert body["ok"] is True
        assert body["pending"] == 0
        assert body["executing"] is False
        assert body["client_id"] == service.registry.client_id

    def test_metrics(self, client):
        client.post("/v1/say", json={"text": "count me", "voice_id": 1})
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "voice_queue_tasks_enqueued_total" in resp.text
        assert "voice_queue_pending_tasks" in resp.text
