"""
Timing Utilities.

    with timeit("playback") as t:
        await player.play(data)
    print(f"Took {t.timing.seconds:.3f}s")

Uses time.perf_counter() for high-resolution wall-clock timing. Works
around await points too: the block's duration includes time suspended.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed (e.g., "synthesis", "playback").
        seconds: Duration in seconds.
        meta: Optional metadata.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The result is available as .timing after the block exits, even when
    the block raised. .elapsed gives the running time inside the block.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def elapsed(self) -> float:
        """Seconds since the block was entered (0.0 before entering)."""
        if self._t0 is None:
            return 0.0
        if self.timing is not None:
            return self.timing.seconds
        return perf_counter() - self._t0
