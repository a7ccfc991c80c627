"""
Sequential Speech Pipeline.

Plays speech tasks strictly one at a time, in the order they were
enqueued, while the synthesis of queued tasks runs ahead of playback.

Architecture:
    enqueue(task)
        -> append to pending list (call order = play order)
        -> start prefetch synthesis (runs while earlier tasks play)
        -> register "queued" claim in the shared registry
        -> start draining if idle
        -> return once prefetch has finished (success or failure)

    drain
        -> pop head, mark executing
        -> register "playing" claim
        -> wait for its prefetch; synthesize inline if there is no payload
        -> play
        -> remove claim (or re-assert it for a retained voice),
           unmark executing, continue with next head

Task States:
    Queued(no payload) -> Synthesizing -> Queued(payload) -> Executing -> Done
    Synthesizing -> Queued(no payload) when prefetch fails; execution then
    synthesizes inline.

Concurrency:
    Everything runs on one asyncio event loop. The pending list, the
    current task and the executing flag are only touched from that loop,
    and never across an await, so get_status() always sees a consistent
    state. At most one _execute() runs at any time: _drain() is a no-op
    while a task is executing.

    Registry calls are blocking file I/O (lock retry loop included) and
    go through asyncio.to_thread. They are serialized per pipeline by an
    asyncio.Lock, which is FIFO, so a task's "queued" claim is always
    written before its "playing" claim and its removal.

Failure Handling:
    - Prefetch failure: logged, payload left empty, never raised to caller.
    - Registry failure: logged, never blocks enqueue or playback.
    - Playback or inline synthesis failure: logged, next task proceeds.

Retained Voices:
    A voice passed to retain_voice() (the session voice) keeps a "queued"
    claim for as long as it is retained. Claims are keyed by (client,
    voice), so finishing a task on that voice and clear() re-add the
    claim instead of leaving the voice free for other processes.

Usage:
    pipeline = TaskPipeline(play=player.play, synthesize=synth, registry=registry)
    await pipeline.enqueue(SpeechTask("こんにちは", voice_id=3))
    await pipeline.join()
"""
from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set
from uuid import uuid4

from voice_queue.core.config import Defaults
from voice_queue.core.errors import SynthesisError, VoiceQueueError
from voice_queue.core.logging import fail, get_logger, info, set_request_id, success, verbose, warn
from voice_queue.core.metrics import metrics
from voice_queue.speech.usage_registry import SharedUsageRegistry, UsageStatus
from voice_queue.utils.timeit import timeit

_LOG = get_logger("voice-queue.pipeline")


@dataclass
class SpeechTask:
    """
    One "speak this text" request.

    Attributes:
        text: Text to speak.
        voice_id: Voice (VOICEVOX style id).
        speed: Speed scale, 1.0 = normal.
        payload: Synthesized WAV bytes, filled in by the pipeline.
        task_id: Short id used to correlate log lines.
    """
    text: str
    voice_id: int
    speed: float = Defaults.TTS_DEFAULT_SPEED
    payload: Optional[bytes] = field(default=None, repr=False)
    task_id: str = field(default_factory=lambda: uuid4().hex[:8])

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view (payload reduced to a flag)."""
        return {
            "task_id": self.task_id,
            "text": self.text,
            "voice_id": self.voice_id,
            "speed": self.speed,
            "synthesized": self.payload is not None,
        }


@dataclass(frozen=True)
class PipelineStatus:
    """Point-in-time view of the pipeline."""
    pending_count: int
    is_executing: bool
    current_task: Optional[SpeechTask] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pending_count": self.pending_count,
            "is_executing": self.is_executing,
            "current_task": self.current_task.to_dict() if self.current_task else None,
        }


Synthesizer = Callable[[SpeechTask], Awaitable[bytes]]
Player = Callable[[bytes], Awaitable[None]]


class TaskPipeline:
    """
    FIFO executor with synthesis prefetch and registry bookkeeping.

    Must be used from a single event loop.
    """

    def __init__(
        self,
        play: Player,
        synthesize: Optional[Synthesizer] = None,
        registry: Optional[SharedUsageRegistry] = None,
        text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS,
    ):
        """
        Args:
            play: Coroutine function playing one payload.
            synthesize: Coroutine function turning a task into WAV bytes.
                Without it, tasks must arrive with a payload.
            registry: Shared usage registry to keep informed of claims.
            text_preview_chars: Characters of task text shown in logs.
        """
        self._play = play
        self._synthesize = synthesize
        self._registry = registry
        self._preview_chars = text_preview_chars

        self._pending: Deque[SpeechTask] = deque()
        self._current: Optional[SpeechTask] = None
        self._executing = False
        self._runner: Optional[asyncio.Task] = None
        self._prefetching: Dict[int, asyncio.Task] = {}
        self._registry_lock = asyncio.Lock()
        self._failed = 0
        self._retained: Set[int] = set()

    @property
    def registry(self) -> Optional[SharedUsageRegistry]:
        return self._registry

    @property
    def retained_voices(self) -> List[int]:
        return sorted(self._retained)

    def retain_voice(self, voice_id: int) -> None:
        """Keep a claim on voice_id after its tasks finish and across clear()."""
        self._retained.add(voice_id)

    def discard_voice(self, voice_id: int) -> None:
        self._retained.discard(voice_id)

    @property
    def failed_count(self) -> int:
        """Tasks whose synthesis or playback failed so far."""
        return self._failed

    def _preview(self, text: str) -> str:
        if len(text) <= self._preview_chars:
            return text
        return text[: self._preview_chars] + "…"

    # =========================================================================
    # Registry bookkeeping (best effort)
    # =========================================================================

    async def _registry_call(self, op: str, fn: Callable[..., Any], *args: Any) -> None:
        if self._registry is None:
            return
        async with self._registry_lock:
            try:
                await asyncio.to_thread(fn, *args)
            except (VoiceQueueError, OSError) as e:
                warn(_LOG, "registry_update_failed", op=op, error=str(e))

    async def _claim(self, voice_id: int, status: UsageStatus) -> None:
        if self._registry is not None:
            await self._registry_call(f"claim_{status.value}", self._registry.add_usage, voice_id, status)

    async def _release(self, voice_id: int) -> None:
        if self._registry is None:
            return
        if voice_id in self._retained:
            await self._registry_call("retain", self._registry.add_usage, voice_id, UsageStatus.QUEUED)
        else:
            await self._registry_call("release", self._registry.remove_usage, voice_id)

    # =========================================================================
    # Synthesis
    # =========================================================================

    async def _prefetch(self, task: SpeechTask) -> None:
        assert self._synthesize is not None
        try:
            with timeit("prefetch") as t:
                task.payload = await self._synthesize(task)
        except Exception as e:
            metrics.record_synthesis("prefetch", "error")
            warn(_LOG, "prefetch_failed", task=task.task_id, voice_id=task.voice_id, error=str(e))
        else:
            metrics.record_synthesis("prefetch", "success")
            verbose(_LOG, "prefetched", task=task.task_id, seconds=round(t.timing.seconds, 3))
        finally:
            self._prefetching.pop(id(task), None)

    async def _payload_for(self, task: SpeechTask) -> bytes:
        inflight = self._prefetching.get(id(task))
        if inflight is not None:
            await asyncio.shield(inflight)
        if task.payload is not None:
            return task.payload

        if self._synthesize is None:
            raise SynthesisError("task has no payload and no synthesizer is configured")
        info(_LOG, "inline_synthesis", task=task.task_id, voice_id=task.voice_id)
        try:
            task.payload = await self._synthesize(task)
        except Exception:
            metrics.record_synthesis("inline", "error")
            raise
        metrics.record_synthesis("inline", "success")
        return task.payload

    # =========================================================================
    # Public API
    # =========================================================================

    async def enqueue(self, task: SpeechTask) -> int:
        """
        Queue a task behind everything already queued.

        Returns once the task's synthesis has finished or failed; failures
        are logged, not raised. Returns the number of tasks still waiting.
        """
        self._pending.append(task)
        metrics.record_enqueued()
        metrics.set_pending(len(self._pending))

        prefetch: Optional[asyncio.Task] = None
        if self._synthesize is not None and task.payload is None:
            prefetch = asyncio.create_task(self._prefetch(task))
            self._prefetching[id(task)] = prefetch

        info(
            _LOG, "task_enqueued",
            task=task.task_id,
            voice_id=task.voice_id,
            pending=len(self._pending),
            text=self._preview(task.text),
        )
        self._drain()

        await self._claim(task.voice_id, UsageStatus.QUEUED)
        if prefetch is not None:
            await asyncio.shield(prefetch)
        return len(self._pending)

    def get_status(self) -> PipelineStatus:
        """Snapshot of pending count, executing flag and current task."""
        return PipelineStatus(
            pending_count=len(self._pending),
            is_executing=self._executing,
            current_task=self._current,
        )

    async def clear(self) -> int:
        """
        Drop every task that has not started and this client's claims.

        The task currently playing is not interrupted. Claims on retained
        voices are re-added. Returns the number
        of dropped tasks.
        """
        dropped = len(self._pending)
        self._pending.clear()
        metrics.set_pending(0)
        info(_LOG, "queue_cleared", dropped=dropped)
        if self._registry is not None:
            await self._registry_call("clear", self._registry.clear_all_usage_for_client)
            for voice_id in sorted(self._retained):
                await self._registry_call("retain", self._registry.add_usage, voice_id, UsageStatus.QUEUED)
        return dropped

    async def get_voices_in_use(self) -> List[int]:
        """
        Voices claimed by any cooperating process.

        Falls back to the voices this pipeline holds locally when the
        registry cannot be read.
        """
        if self._registry is not None:
            try:
                return await asyncio.to_thread(self._registry.get_voices_in_use)
            except (VoiceQueueError, OSError) as e:
                warn(_LOG, "voices_in_use_local_fallback", error=str(e))

        local = {t.voice_id for t in self._pending}
        if self._current is not None:
            local.add(self._current.voice_id)
        return sorted(local)

    async def join(self, poll_interval: float = 0.01) -> None:
        """Wait until nothing is pending or executing."""
        while self._executing or self._pending:
            await asyncio.sleep(poll_interval)

    async def aclose(self) -> None:
        """Drop pending work, stop the running task and release claims."""
        self._pending.clear()
        for prefetch in list(self._prefetching.values()):
            prefetch.cancel()
        runner = self._runner
        if runner is not None and not runner.done():
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        if self._registry is not None:
            await self._registry_call("clear", self._registry.clear_all_usage_for_client)

    # =========================================================================
    # Draining
    # =========================================================================

    def _drain(self) -> None:
        if self._executing or not self._pending:
            return
        task = self._pending.popleft()
        self._executing = True
        self._current = task
        metrics.set_pending(len(self._pending))
        self._runner = asyncio.get_running_loop().create_task(self._execute(task))

    async def _execute(self, task: SpeechTask) -> None:
        set_request_id(task.task_id)
        status = "error"
        try:
            with timeit("execute") as t:
                try:
                    await self._claim(task.voice_id, UsageStatus.PLAYING)
                    payload = await self._payload_for(task)
                    await self._play(payload)
                    status = "success"
                except Exception as e:
                    self._failed += 1
                    fail(_LOG, "task_failed", task=task.task_id, voice_id=task.voice_id, error=str(e))
                finally:
                    await self._release(task.voice_id)
            metrics.record_execution(status, t.timing.seconds)
            if status == "success":
                success(_LOG, "task_played", task=task.task_id, seconds=round(t.timing.seconds, 3))
        finally:
            self._executing = False
            self._current = None
            self._drain()
