"""
Per-Process Session Voice.

Gives each voice-queue process its own voice so that several agents
talking at once stay distinguishable. The choice is made once, lazily:

    1. Fetch every voice from the engine.
    2. Read the claims of all clients from the shared registry. This uses
       get_entries(), a lock-free read pruned in memory, rather than
       get_voices_in_use(): choosing the least claimed voice needs the
       number of claims per voice, not just the set of claimed ids.
    3. Pick randomly among voices nobody claims.
    4. If every voice is claimed, pick randomly among the voices with the
       fewest claims.
    5. Record a "queued" claim for the chosen voice.

If the engine or the registry fails, the configured default voice is used
and nothing is claimed.

The claim is keyed by (client, voice) like every other claim, so the
owner of the session (SpeechService) asks the pipeline to retain the voice;
otherwise the first finished utterance would remove it.
"""
from __future__ import annotations

import asyncio
import random
import time
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from voice_queue.core.errors import VoiceQueueError
from voice_queue.core.logging import get_logger, info, warn
from voice_queue.speech.usage_registry import SharedUsageRegistry, UsageEntry, UsageStatus
from voice_queue.speech.voicevox import Voice, VoicevoxClient

_LOG = get_logger("voice-queue.session")


@dataclass(frozen=True)
class SessionVoiceInfo:
    voice_id: int
    start_time: float
    duration_s: float
    client_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "start_time": self.start_time,
            "duration_s": self.duration_s,
            "client_id": self.client_id,
        }


def choose_voice(voices: List[Voice], claims: List[UsageEntry], rng: random.Random) -> Voice:
    """Random unclaimed voice, else a random one among the least claimed."""
    counts = Counter(entry.voice_id for entry in claims)
    unused = [v for v in voices if counts[v.id] == 0]
    if unused:
        return rng.choice(unused)
    fewest = min(counts[v.id] for v in voices)
    return rng.choice([v for v in voices if counts[v.id] == fewest])


class SessionVoice:
    """Lazily chosen voice for this process."""

    def __init__(
        self,
        client: VoicevoxClient,
        registry: SharedUsageRegistry,
        default_voice_id: int,
        rng: Optional[random.Random] = None,
    ):
        self._client = client
        self._registry = registry
        self._default_voice_id = default_voice_id
        self._rng = rng or random.Random()
        self._voice_id: Optional[int] = None
        self._claimed = False
        self._start_time = time.time()
        self._init_lock = asyncio.Lock()

    @property
    def claimed(self) -> bool:
        """True while the chosen voice holds a registry claim."""
        return self._claimed

    @property
    def voice_id(self) -> Optional[int]:
        """Chosen voice, None before initialize()."""
        return self._voice_id

    async def initialize(self) -> int:
        """Choose and claim the session voice once; later calls return it."""
        async with self._init_lock:
            if self._voice_id is not None:
                return self._voice_id

            try:
                voices = await self._client.list_voices()
                if not voices:
                    raise VoiceQueueError("engine reported no voices")
                claims = await asyncio.to_thread(self._registry.get_entries)
                chosen = choose_voice(voices, claims, self._rng)
                await asyncio.to_thread(self._registry.add_usage, chosen.id, UsageStatus.QUEUED)
            except (VoiceQueueError, OSError) as e:
                warn(_LOG, "session_voice_fallback", voice_id=self._default_voice_id, error=str(e))
                self._voice_id = self._default_voice_id
                return self._voice_id

            self._voice_id = chosen.id
            self._claimed = True
            info(_LOG, "session_voice_chosen", voice_id=chosen.id, character=chosen.character, style=chosen.name)
            return self._voice_id

    async def get_session_voice(self) -> SessionVoiceInfo:
        voice_id = await self.initialize()
        return SessionVoiceInfo(
            voice_id=voice_id,
            start_time=self._start_time,
            duration_s=time.time() - self._start_time,
            client_id=self._registry.client_id,
        )

    async def cleanup(self) -> None:
        """Drop the session claim. Failures are logged."""
        if self._voice_id is None or not self._claimed:
            return
        try:
            await asyncio.to_thread(self._registry.remove_usage, self._voice_id)
        except (VoiceQueueError, OSError) as e:
            warn(_LOG, "session_cleanup_failed", voice_id=self._voice_id, error=str(e))
        else:
            self._claimed = False
