"""
Shared Voice Usage Registry.

A small table of "which voice is claimed by which client, since when, in
what state", stored as one JSON file that every voice-queue process on
the machine reads and writes. Processes use it to avoid picking a voice
that another process is already speaking with.

File Layout:
    {state_dir}/voice-queue-usage.json        snapshot
    {state_dir}/voice-queue-usage.json.lock   FileLock sentinel

    {
      "entries": [
        {"voice_id": 3, "client_id": "4211-1760830000000-k3j9x0a1b",
         "timestamp": 1760830012.5, "status": "playing"}
      ],
      "last_updated": 1760830012.5
    }

Consistency Model:
    Every operation takes the FileLock, reloads the file, prunes expired
    entries, applies its change and writes the file back through a temp
    file + atomic replace. Nothing is cached between operations. Entries
    are keyed by (client_id, voice_id); adding the same pair again
    replaces the earlier entry.

Expiry:
    An entry is expired when now - timestamp >= entry_ttl (5 minutes).
    Expired entries are dropped on every load, so a client that crashed
    without cleaning up stops blocking its voices after at most entry_ttl.

Failure Handling:
    - Missing or malformed file: read as an empty snapshot, rewritten on
      the next mutation.
    - Lock contention: mutations raise LockUnavailableError; callers log
      and carry on. get_voices_in_use() instead degrades to a lock-free
      read pruned in memory only.

Usage:
    registry = SharedUsageRegistry(state_dir="/tmp")
    registry.add_usage(3, UsageStatus.PLAYING)
    registry.get_voices_in_use()   # [3]
    registry.remove_usage(3)
"""
from __future__ import annotations

import json
import os
import tempfile
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from voice_queue.core.config import Defaults, RegistryConfig
from voice_queue.core.errors import CorruptStateError, LockUnavailableError
from voice_queue.core.logging import debug, get_logger, verbose, warn
from voice_queue.core.metrics import metrics
from voice_queue.speech.file_lock import FileLock

_LOG = get_logger("voice-queue.registry")


class UsageStatus(str, Enum):
    """State of a claim."""
    QUEUED = "queued"
    PLAYING = "playing"


@dataclass
class UsageEntry:
    """
    One claim on a voice.

    Attributes:
        voice_id: Claimed voice (VOICEVOX style id).
        client_id: Identity of the claiming process.
        timestamp: Epoch seconds of the last add_usage for this pair.
        status: queued or playing.
    """
    voice_id: int
    client_id: str
    timestamp: float
    status: UsageStatus

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageEntry":
        return cls(
            voice_id=int(data["voice_id"]),
            client_id=str(data["client_id"]),
            timestamp=float(data["timestamp"]),
            status=UsageStatus(data["status"]),
        )


@dataclass
class UsageSnapshot:
    """Whole content of the registry file."""
    entries: List[UsageEntry] = field(default_factory=list)
    last_updated: float = 0.0

    def to_json(self) -> str:
        return json.dumps(
            {
                "entries": [e.to_dict() for e in self.entries],
                "last_updated": self.last_updated,
            },
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str) -> "UsageSnapshot":
        """
        Parse file content.

        Raises:
            CorruptStateError: Content is not a valid snapshot.
        """
        try:
            data = json.loads(text)
            entries = [UsageEntry.from_dict(e) for e in data["entries"]]
            last_updated = float(data.get("last_updated", 0.0))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CorruptStateError(f"unreadable usage snapshot: {e}") from e
        return cls(entries=entries, last_updated=last_updated)


def make_client_id() -> str:
    """Return a process-unique identity: pid, start time in ms, random suffix."""
    return f"{os.getpid()}-{int(time.time() * 1000)}-{uuid4().hex[:9]}"


class SharedUsageRegistry:
    """
    File-backed voice claim table shared across processes.

    Each instance has its own client identity; two instances in the same
    process behave like two separate clients.
    """

    def __init__(
        self,
        state_dir: Optional[str | Path] = None,
        client_id: Optional[str] = None,
        entry_ttl: float = Defaults.REGISTRY_ENTRY_TTL_SECONDS,
        lock_timeout: float = Defaults.REGISTRY_LOCK_TIMEOUT_SECONDS,
        max_retries: int = Defaults.REGISTRY_LOCK_MAX_RETRIES,
        retry_delay: float = Defaults.REGISTRY_LOCK_RETRY_DELAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            state_dir: Directory holding the registry file (default: OS temp dir).
            client_id: Identity override; generated when omitted.
            entry_ttl: Seconds after which a claim expires.
            lock_timeout: Seconds after which a lock sentinel is abandoned.
            max_retries: Lock retries after the first attempt.
            retry_delay: Seconds between lock attempts.
            clock: Time source returning epoch seconds.
        """
        directory = Path(state_dir or tempfile.gettempdir())
        self._path = directory / Defaults.REGISTRY_FILENAME
        self._client_id = client_id or make_client_id()
        self._entry_ttl = entry_ttl
        self._clock = clock
        self._lock = FileLock(
            self._path.with_name(self._path.name + ".lock"),
            owner=self._client_id,
            lock_timeout=lock_timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

    @classmethod
    def from_config(cls, config: RegistryConfig, client_id: Optional[str] = None) -> "SharedUsageRegistry":
        return cls(
            state_dir=config.state_dir,
            client_id=client_id,
            entry_ttl=config.entry_ttl_seconds,
            lock_timeout=config.lock_timeout_seconds,
            max_retries=config.lock_max_retries,
            retry_delay=config.lock_retry_delay_seconds,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def path(self) -> Path:
        """Location of the registry file."""
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._lock.path

    def get_client_identity(self) -> str:
        """Identity under which this instance records claims."""
        return self._client_id

    # =========================================================================
    # File I/O
    # =========================================================================

    def _read(self) -> UsageSnapshot:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return UsageSnapshot(last_updated=self._clock())
        except OSError as e:
            warn(_LOG, "registry_read_error", path=str(self._path), error=str(e))
            return UsageSnapshot(last_updated=self._clock())

        try:
            return UsageSnapshot.from_json(text)
        except CorruptStateError as e:
            warn(_LOG, "registry_corrupt", path=str(self._path), error=e.message)
            return UsageSnapshot(last_updated=self._clock())

    def _write(self, snapshot: UsageSnapshot) -> None:
        snapshot.last_updated = self._clock()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic write so lock-free readers never see a half-written file
        tmp = self._path.with_name(f"{self._path.name}.{uuid4().hex[:8]}.tmp")
        try:
            tmp.write_text(snapshot.to_json(), encoding="utf-8")
            tmp.replace(self._path)
        finally:
            if tmp.exists():
                tmp.unlink()

    def _prune(self, snapshot: UsageSnapshot) -> UsageSnapshot:
        now = self._clock()
        active = [e for e in snapshot.entries if now - e.timestamp < self._entry_ttl]
        dropped = len(snapshot.entries) - len(active)
        if dropped:
            verbose(_LOG, "expired_claims_pruned", count=dropped)
        return UsageSnapshot(entries=active, last_updated=snapshot.last_updated)

    def _load(self) -> UsageSnapshot:
        return self._prune(self._read())

    def _update(self, mutate: Callable[[UsageSnapshot], None]) -> None:
        """Lock, load, prune, mutate, persist, unlock."""
        try:
            self._lock.acquire()
        except LockUnavailableError:
            metrics.record_lock_failure()
            raise
        try:
            snapshot = self._load()
            mutate(snapshot)
            self._write(snapshot)
        finally:
            self._lock.release()

    # =========================================================================
    # Operations
    # =========================================================================

    def add_usage(self, voice_id: int, status: UsageStatus | str = UsageStatus.QUEUED) -> None:
        """
        Claim voice_id for this client, replacing any earlier claim on it.

        Raises:
            LockUnavailableError: Lock not acquired within the retry budget.
        """
        entry = UsageEntry(
            voice_id=int(voice_id),
            client_id=self._client_id,
            timestamp=self._clock(),
            status=UsageStatus(status),
        )

        def mutate(snapshot: UsageSnapshot) -> None:
            for i, existing in enumerate(snapshot.entries):
                if existing.client_id == entry.client_id and existing.voice_id == entry.voice_id:
                    snapshot.entries[i] = entry
                    return
            snapshot.entries.append(entry)

        self._update(mutate)
        debug(_LOG, "claim_added", voice_id=entry.voice_id, status=entry.status.value)

    def remove_usage(self, voice_id: int) -> None:
        """
        Drop this client's claim on voice_id. Absent claims are ignored.

        Raises:
            LockUnavailableError: Lock not acquired within the retry budget.
        """
        voice_id = int(voice_id)

        def mutate(snapshot: UsageSnapshot) -> None:
            snapshot.entries = [
                e for e in snapshot.entries
                if not (e.client_id == self._client_id and e.voice_id == voice_id)
            ]

        self._update(mutate)
        debug(_LOG, "claim_removed", voice_id=voice_id)

    def clear_all_usage_for_client(self) -> None:
        """
        Drop every claim held by this client.

        Raises:
            LockUnavailableError: Lock not acquired within the retry budget.
        """
        def mutate(snapshot: UsageSnapshot) -> None:
            snapshot.entries = [e for e in snapshot.entries if e.client_id != self._client_id]

        self._update(mutate)
        debug(_LOG, "claims_cleared", client_id=self._client_id)

    def get_voices_in_use(self) -> List[int]:
        """
        Voice ids claimed by any client, deduplicated and sorted.

        Persists the pruned snapshot so expiry reaches the file. Under lock
        contention, answers from a lock-free read pruned in memory only.
        """
        try:
            self._lock.acquire()
        except LockUnavailableError:
            metrics.record_lock_failure()
            warn(_LOG, "voices_in_use_degraded", reason="lock_unavailable")
            snapshot = self._load()
        else:
            try:
                snapshot = self._load()
                self._write(snapshot)
            finally:
                self._lock.release()

        return sorted({e.voice_id for e in snapshot.entries})

    def get_entries(self) -> List[UsageEntry]:
        """Unexpired entries of all clients, read without taking the lock."""
        return list(self._load().entries)
