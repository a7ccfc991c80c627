"""
SpeechService - Process-Wide Speech Front Door.

Builds every speech component from Settings and exposes the operations
both the HTTP API and the CLI use.

Architecture:
    say(text, voice_id, speed)
        -> validate -> resolve voice (explicit / session / default)
        -> TaskPipeline.enqueue(SpeechTask)
               synthesize: VoicevoxClient.synthesize
               play:       AudioPlayer.play
               registry:   SharedUsageRegistry

Voice Resolution:
    1. voice_id given by the caller
    2. session voice, when tts.use_session_voice is enabled
    3. tts.default_voice_id

    The session voice stays claimed in the shared registry until aclose(),
    also between utterances and across clear().

Shutdown:
    aclose() drops queued work, stops the running task, removes this
    process's claims (queue and session) and closes the HTTP client.

Example:
    >>> settings = load_settings(missing_ok=True)
    >>> service = SpeechService(settings)
    >>> await service.say("こんにちは", speed=1.2)
    >>> await service.pipeline.join()
    >>> await service.aclose()
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from voice_queue.core.config import ServiceConfig, Settings
from voice_queue.core.logging import get_logger, info
from voice_queue.services.validators import validate_speed, validate_text, validate_voice_id
from voice_queue.speech.pipeline import PipelineStatus, SpeechTask, TaskPipeline
from voice_queue.speech.player import AudioPlayer
from voice_queue.speech.session_voice import SessionVoice, SessionVoiceInfo
from voice_queue.speech.usage_registry import SharedUsageRegistry
from voice_queue.speech.voicevox import Voice, VoicevoxClient

_LOG = get_logger("voice-queue.service")


class SpeechService:
    """
    Owns the client, player, registry, pipeline and session voice.

    Components can be injected (tests, embedding); anything omitted is
    built from the validated ServiceConfig.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[VoicevoxClient] = None,
        player: Optional[AudioPlayer] = None,
        registry: Optional[SharedUsageRegistry] = None,
    ):
        """
        Args:
            settings: Application settings loaded from YAML/environment.
            client: Synthesis backend client override.
            player: Audio player override.
            registry: Shared usage registry override.

        Raises:
            ConfigValidationError: Settings fail validation.
        """
        self._settings = settings
        self._config: ServiceConfig = ServiceConfig.from_settings(settings)

        self._client = client or VoicevoxClient.from_config(self._config.backend)
        self._player = player or AudioPlayer.from_config(self._config.player)
        self._registry = registry or SharedUsageRegistry.from_config(self._config.registry)

        self._pipeline = TaskPipeline(
            play=self._player.play,
            synthesize=self._synthesize,
            registry=self._registry,
            text_preview_chars=self._config.logging.text_preview_chars,
        )
        self._session = SessionVoice(
            client=self._client,
            registry=self._registry,
            default_voice_id=self._config.speech.default_voice_id,
        )

        info(
            _LOG, "service_created",
            backend=self._config.backend.url,
            client_id=self._registry.client_id,
            registry=str(self._registry.path),
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def pipeline(self) -> TaskPipeline:
        return self._pipeline

    @property
    def registry(self) -> SharedUsageRegistry:
        return self._registry

    @property
    def client(self) -> VoicevoxClient:
        return self._client

    # =========================================================================
    # Operations
    # =========================================================================

    async def _synthesize(self, task: SpeechTask) -> bytes:
        return await self._client.synthesize(task.text, task.voice_id, task.speed)

    async def _init_session(self) -> int:
        voice_id = await self._session.initialize()
        if self._session.claimed:
            self._pipeline.retain_voice(voice_id)
        return voice_id

    async def _resolve_voice(self, voice_id: Optional[int]) -> int:
        if voice_id is not None:
            return voice_id
        if self._config.speech.use_session_voice:
            return await self._init_session()
        return self._config.speech.default_voice_id

    async def say(self, text: str, voice_id: Optional[int] = None, speed: Optional[float] = None) -> int:
        """
        Queue text for speaking.

        Returns:
            Number of tasks waiting behind the one currently playing.

        Raises:
            InvalidInputError: Blank text, negative voice id or speed out of range.
        """
        text = validate_text(text)
        voice_id = validate_voice_id(voice_id)
        speed = validate_speed(speed)

        task = SpeechTask(
            text=text,
            voice_id=await self._resolve_voice(voice_id),
            speed=speed if speed is not None else self._config.speech.default_speed,
        )
        return await self._pipeline.enqueue(task)

    async def list_voices(self) -> List[Voice]:
        """Raises BackendError when the engine cannot be queried."""
        return await self._client.list_voices()

    def status(self) -> PipelineStatus:
        return self._pipeline.get_status()

    async def clear(self) -> int:
        return await self._pipeline.clear()

    async def voices_in_use(self) -> List[int]:
        return await self._pipeline.get_voices_in_use()

    async def session_voice(self) -> SessionVoiceInfo:
        await self._init_session()
        return await self._session.get_session_voice()

    def get_info(self) -> Dict[str, Any]:
        """Diagnostic view for /health and the CLI."""
        status = self._pipeline.get_status()
        return {
            "ok": True,
            "pending": status.pending_count,
            "executing": status.is_executing,
            "client_id": self._registry.client_id,
            "backend": self._config.backend.url,
        }

    async def aclose(self) -> None:
        """Stop playback work, release claims and close the HTTP client."""
        await self._pipeline.aclose()
        await self._session.cleanup()
        if self._session.voice_id is not None:
            self._pipeline.discard_voice(self._session.voice_id)
        await self._player.drain()
        await self._client.aclose()
        info(_LOG, "service_closed", client_id=self._registry.client_id)


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[SpeechService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SpeechService:
    """
    Get or create the global SpeechService instance.

    Thread-safe lazy singleton; settings are only used on first call.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SpeechService(settings)
    return _service


def peek_service() -> Optional[SpeechService]:
    """The global instance if one was created, without creating it."""
    return _service


def reset_service() -> None:
    """
    Reset the global service instance.

    Used primarily for testing to ensure clean state between tests.
    """
    global _service
    with _service_lock:
        _service = None
