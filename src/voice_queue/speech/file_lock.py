"""
Advisory Cross-Process File Lock.

A lock is held while a sentinel file exists. Acquisition is an atomic
create-exclusive (O_CREAT | O_EXCL) of the sentinel, written with the
owner's identity for diagnostics. Release deletes it.

Crash Tolerance:
    A process that dies while holding the lock leaves the sentinel behind.
    Any contender that finds a sentinel whose mtime is older than
    lock_timeout deletes it and retries, so an abandoned lock blocks
    others for at most lock_timeout plus one retry delay.

    The lock is advisory: every participant must use this protocol and
    share a roughly synchronized clock. It is not kernel-enforced.

Retry Policy:
    One initial attempt plus max_retries retries, sleeping retry_delay
    between attempts. When all attempts fail, LockUnavailableError is
    raised. Defaults: 5 retries, 100 ms delay, 1 s staleness.

Usage:
    lock = FileLock("/tmp/voice-queue-usage.json.lock", owner=client_id)
    with lock:
        ...  # read-modify-write the shared file

See Also:
    - usage_registry.py: The only user of this lock
"""
from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Optional

from voice_queue.core.config import Defaults
from voice_queue.core.errors import LockUnavailableError
from voice_queue.core.logging import debug, get_logger

_LOG = get_logger("voice-queue.lock")


class FileLock:
    """
    Sentinel-file mutex shared by cooperating processes.

    Not reentrant. A single instance may be used from several threads as
    long as each acquire() is paired with a release().
    """

    def __init__(
        self,
        path: str | Path,
        owner: str = "",
        lock_timeout: float = Defaults.REGISTRY_LOCK_TIMEOUT_SECONDS,
        max_retries: int = Defaults.REGISTRY_LOCK_MAX_RETRIES,
        retry_delay: float = Defaults.REGISTRY_LOCK_RETRY_DELAY_SECONDS,
    ):
        """
        Args:
            path: Sentinel file location.
            owner: Identity written into the sentinel.
            lock_timeout: Age in seconds after which a sentinel is abandoned.
            max_retries: Retries after the first failed attempt.
            retry_delay: Seconds to sleep between attempts.
        """
        self.path = Path(path)
        self.owner = owner
        self.lock_timeout = lock_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        try:
            os.write(fd, self.owner.encode("utf-8"))
        finally:
            os.close(fd)
        return True

    def _sentinel_age(self) -> Optional[float]:
        """Seconds since the sentinel was last modified, None if it is gone."""
        try:
            return time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _break_if_stale(self) -> None:
        age = self._sentinel_age()
        if age is None or age <= self.lock_timeout:
            return
        try:
            self.path.unlink()
            debug(_LOG, "stale_lock_removed", path=str(self.path), age=round(age, 3))
        except FileNotFoundError:
            # Another contender removed it first
            pass

    def acquire(self) -> None:
        """
        Acquire the lock or raise.

        Raises:
            LockUnavailableError: All attempts found a live sentinel.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            if self._try_create():
                if attempt:
                    debug(_LOG, "lock_acquired", path=str(self.path), attempt=attempt + 1)
                return
            self._break_if_stale()
            if attempt < attempts - 1:
                time.sleep(self.retry_delay)

        raise LockUnavailableError(
            f"could not acquire {self.path} after {attempts} attempts",
            details={"path": str(self.path), "attempts": attempts},
        )

    def release(self) -> None:
        """Delete the sentinel; a missing sentinel is not an error."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def is_locked(self) -> bool:
        """True while a sentinel exists (held by anyone, possibly stale)."""
        return self.path.exists()

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
