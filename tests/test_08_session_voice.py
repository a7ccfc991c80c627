"""Tests for per-process session voice selection."""
from __future__ import annotations

import asyncio
import random

import httpx

from voice_queue.core.config import Settings
from voice_queue.core.errors import BackendError
from voice_queue.services.speech_service import SpeechService
from voice_queue.speech.session_voice import SessionVoice, choose_voice
from voice_queue.speech.usage_registry import SharedUsageRegistry, UsageEntry, UsageStatus
from voice_queue.speech.voicevox import Voice, VoicevoxClient

VOICES = [Voice("A", "normal", 1), Voice("B", "normal", 2), Voice("C", "normal", 3)]


class FakeClient:
    def __init__(self, voices=VOICES, error: Exception | None = None):
        self.voices = voices
        self.error = error
        self.calls = 0

    async def list_voices(self):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.voices)


def _claim(voice_id: int, client_id: str = "other") -> UsageEntry:
    return UsageEntry(voice_id=voice_id, client_id=client_id, timestamp=0.0, status=UsageStatus.PLAYING)


class TestChooseVoice:

    def test_prefers_unclaimed(self):
        for seed in range(10):
            chosen = choose_voice(VOICES, [_claim(1), _claim(2)], random.Random(seed))
            assert chosen.id == 3

    def test_least_claimed_when_all_taken(self):
        claims = [_claim(1), _claim(1, "x"), _claim(2), _claim(2, "x"), _claim(3)]
        for seed in range(10):
            assert choose_voice(VOICES, claims, random.Random(seed)).id == 3

    def test_ties_are_broken_randomly(self):
        claims = [_claim(1), _claim(1, "x"), _claim(2), _claim(3)]
        picks = {choose_voice(VOICES, claims, random.Random(seed)).id for seed in range(50)}
        assert picks == {2, 3}


class TestSessionVoice:

    def test_avoids_voices_of_other_clients(self, tmp_path):
        other = SharedUsageRegistry(state_dir=tmp_path)
        other.add_usage(1)
        other.add_usage(2)
        mine = SharedUsageRegistry(state_dir=tmp_path)
        session = SessionVoice(FakeClient(), mine, default_voice_id=47)

        voice_id = asyncio.run(session.initialize())

        assert voice_id == 3
        claims = [(e.client_id, e.voice_id, e.status) for e in mine.get_entries() if e.client_id == mine.client_id]
        assert claims == [(mine.client_id, 3, UsageStatus.QUEUED)]

    def test_initialize_is_idempotent(self, tmp_path):
        client = FakeClient()
        session = SessionVoice(client, SharedUsageRegistry(state_dir=tmp_path), default_voice_id=47)

        async def scenario():
            first = await session.initialize()
            second = await session.initialize()
            return first, second

        first, second = asyncio.run(scenario())
        assert first == second
        assert client.calls == 1

    def test_backend_failure_falls_back_to_default(self, tmp_path):
        registry = SharedUsageRegistry(state_dir=tmp_path)
        session = SessionVoice(FakeClient(error=BackendError("down")), registry, default_voice_id=47)

        assert asyncio.run(session.initialize()) == 47
        assert registry.get_voices_in_use() == []

    def test_empty_voice_list_falls_back_to_default(self, tmp_path):
        session = SessionVoice(FakeClient(voices=[]), SharedUsageRegistry(state_dir=tmp_path), default_voice_id=8)
        assert asyncio.run(session.initialize()) == 8

    def test_session_info(self, tmp_path):
        registry = SharedUsageRegistry(state_dir=tmp_path)
        session = SessionVoice(FakeClient(), registry, default_voice_id=47)

        info = asyncio.run(session.get_session_voice())

        assert info.voice_id in {1, 2, 3}
        assert info.client_id == registry.client_id
        assert info.duration_s >= 0
        assert info.to_dict()["voice_id"] == info.voice_id

    def test_cleanup_removes_claim(self, tmp_path):
        registry = SharedUsageRegistry(state_dir=tmp_path)
        session = SessionVoice(FakeClient(), registry, default_voice_id=47)

        async def scenario():
            await session.initialize()
            in_use = registry.get_voices_in_use()
            await session.cleanup()
            return in_use

        in_use = asyncio.run(scenario())
        assert len(in_use) == 1
        assert registry.get_voices_in_use() == []

    def test_cleanup_before_initialize_is_noop(self, tmp_path):
        session = SessionVoice(FakeClient(), SharedUsageRegistry(state_dir=tmp_path), default_voice_id=47)
        asyncio.run(session.cleanup())


class TestSessionVoiceThroughService:
    """The session claim outlives the utterances spoken with it."""

    @staticmethod
    def _service(state_dir):
        speakers = [{"name": "A", "styles": [{"name": "normal", "id": 2}]}]

        def engine(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/speakers":
                return httpx.Response(200, json=speakers)
            if request.url.path == "/audio_query":
                return httpx.Response(200, json={"speedScale": 1.0})
            return httpx.Response(200, content=b"RIFF")

        class SilentPlayer:
            async def play(self, data: bytes) -> None:
                return None

            async def drain(self) -> None:
                return None

        return SpeechService(
            Settings(raw={"tts": {"use_session_voice": True}}),
            client=VoicevoxClient("http://engine", transport=httpx.MockTransport(engine)),
            player=SilentPlayer(),
            registry=SharedUsageRegistry(state_dir=state_dir, retry_delay=0.01),
        )

    def test_claim_kept_after_utterance(self, tmp_path):
        service = self._service(tmp_path)
        observer = SharedUsageRegistry(state_dir=tmp_path)

        async def scenario():
            info = await service.session_voice()
            before = observer.get_voices_in_use()
            await service.say("hello")
            await service.pipeline.join()
            after = observer.get_voices_in_use()
            await service.clear()
            after_clear = observer.get_voices_in_use()
            await service.aclose()
            return info.voice_id, before, after, after_clear

        voice_id, before, after, after_clear = asyncio.run(scenario())
        assert voice_id == 2
        assert before == [2]
        assert after == [2]
        assert after_clear == [2]
        assert observer.get_voices_in_use() == []

    def test_say_without_explicit_voice_claims_session_voice(self, tmp_path):
        service = self._service(tmp_path)

        async def scenario():
            await service.say("hello")
            await service.pipeline.join()
            in_use = await service.voices_in_use()
            await service.aclose()
            return in_use

        assert asyncio.run(scenario()) == [2]
        assert service.pipeline.retained_voices == []
