"""
VOICEVOX Engine Client.

Talks to a VOICEVOX-compatible HTTP engine (default
http://127.0.0.1:50021). Synthesis is a two-step exchange:

    1. POST /audio_query?speaker={id}&text={text}  -> query JSON
    2. POST /synthesis?speaker={id}  (body: query)  -> WAV bytes

The speed is applied by rewriting speedScale in the query between the
two steps. A failure at either step raises SynthesisError naming the
stage so logs show whether the text or the rendering was rejected.

Voices:
    GET /speakers returns characters, each with several styles. Every
    style is a separately playable voice id, so the list is flattened:

        [{"name": "ずんだもん", "styles": [{"name": "ノーマル", "id": 3}, ...]}]
        -> [Voice(character="ずんだもん", name="ノーマル", id=3), ...]

Usage:
    client = VoicevoxClient("http://127.0.0.1:50021")
    wav = await client.synthesize("こんにちは", voice_id=3, speed=1.2)
    voices = await client.list_voices()
    await client.aclose()
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from voice_queue.core.config import BackendConfig, Defaults
from voice_queue.core.errors import BackendError, SynthesisError
from voice_queue.core.logging import get_logger, verbose
from voice_queue.utils.timeit import timeit

_LOG = get_logger("voice-queue.voicevox")


@dataclass(frozen=True)
class Voice:
    """
    A playable voice.

    Attributes:
        character: Speaker (character) name.
        name: Style name within the character.
        id: Style id passed as speaker= to the engine.
    """
    character: str
    name: str
    id: int


class VoicevoxClient:
    """Async client for a VOICEVOX engine."""

    def __init__(
        self,
        base_url: str = Defaults.BACKEND_URL,
        timeout_s: float = Defaults.BACKEND_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Engine root URL.
            timeout_s: Per-request timeout in seconds.
            transport: Optional httpx transport (e.g. MockTransport in tests).
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: BackendConfig) -> "VoicevoxClient":
        return cls(base_url=config.url, timeout_s=config.timeout_s)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _post(self, stage: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise SynthesisError(
                f"{stage} request failed: {e}",
                details={"stage": stage},
            ) from e
        if response.is_error:
            raise SynthesisError(
                f"{stage} rejected: {response.status_code} {response.reason_phrase}",
                details={"stage": stage, "status_code": response.status_code},
            )
        return response

    async def synthesize(self, text: str, voice_id: int, speed: float = 1.0) -> bytes:
        """
        Render text with the given voice and speed.

        Returns:
            WAV bytes as produced by the engine.

        Raises:
            SynthesisError: audio_query or synthesis failed.
        """
        with timeit("synthesis") as t:
            query_response = await self._post(
                "audio_query",
                "/audio_query",
                params={"speaker": voice_id, "text": text},
            )
            try:
                query: Dict[str, Any] = query_response.json()
            except ValueError as e:
                raise SynthesisError(
                    "audio_query returned invalid JSON",
                    details={"stage": "audio_query"},
                ) from e

            query["speedScale"] = speed

            synthesis_response = await self._post(
                "synthesis",
                "/synthesis",
                params={"speaker": voice_id},
                json=query,
            )
            audio = synthesis_response.content

        verbose(_LOG, "synthesized", voice_id=voice_id, bytes=len(audio), seconds=round(t.timing.seconds, 3))
        return audio

    async def list_voices(self) -> List[Voice]:
        """
        Flattened list of every style of every speaker.

        Raises:
            BackendError: Engine unreachable or /speakers failed.
        """
        try:
            response = await self._client.get("/speakers")
            response.raise_for_status()
            speakers = response.json()
        except httpx.HTTPError as e:
            raise BackendError(f"speakers request failed: {e}") from e
        except ValueError as e:
            raise BackendError("speakers returned invalid JSON") from e

        voices: List[Voice] = []
        for speaker in speakers:
            for style in speaker.get("styles", []):
                voices.append(Voice(character=speaker["name"], name=style["name"], id=int(style["id"])))
        return voices

    async def aclose(self) -> None:
        await self._client.aclose()
