"""
voice-queue: Sequential speech queue with cross-process voice coordination.

Turns "speak this text" requests into played audio, one at a time, while
several processes of the same tool agree on which synthetic voices are
currently in use.

Key Features:
    - FIFO speech queue that synthesizes ahead of playback
    - File-backed voice usage registry shared by all local processes
    - Automatic expiry of stale voice claims (crash tolerant)
    - VOICEVOX-compatible synthesis backend
    - HTTP API (FastAPI) and CLI front ends

Example Usage:
    >>> import asyncio
    >>> from voice_queue.core.config import Settings
    >>> from voice_queue.services import SpeechService
    >>>
    >>> async def main():
    ...     service = SpeechService(Settings(raw={}))
    ...     await service.say("こんにちは")
    ...     await service.pipeline.join()
    ...     await service.aclose()
    >>> asyncio.run(main())
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
