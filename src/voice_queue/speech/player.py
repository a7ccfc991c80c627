"""
Audio Playback Through a Platform Player Command.

Each payload is written to a uniquely named temp .wav file, handed to an
external player process, and deleted afterwards whatever the outcome.

Default Commands:
    macOS:   afplay {path}
    Linux:   aplay -q {path}
    Windows: powershell -NoProfile -Command (New-Object Media.SoundPlayer '{path}').PlaySync()

    Any command can be configured instead; "{path}" in any argument is
    replaced with the temp file location:

        player:
          command: ["paplay", "{path}"]

Modes:
    wait=True (default): play() returns once the player exits. A non-zero
        exit raises PlaybackError.
    wait=False: play() returns as soon as the player has started. The temp
        file is deleted in the background once the player exits; failures
        are only logged.
"""
from __future__ import annotations

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, Set

from voice_queue.core.config import PlayerConfig
from voice_queue.core.errors import PlaybackError
from voice_queue.core.logging import get_logger, verbose, warn

_LOG = get_logger("voice-queue.player")

PATH_PLACEHOLDER = "{path}"


def default_command(platform: str = sys.platform) -> List[str]:
    """Player command for the given platform, with a {path} placeholder."""
    if platform == "darwin":
        return ["afplay", PATH_PLACEHOLDER]
    if platform == "win32":
        return [
            "powershell",
            "-NoProfile",
            "-Command",
            f"(New-Object Media.SoundPlayer '{PATH_PLACEHOLDER}').PlaySync()",
        ]
    return ["aplay", "-q", PATH_PLACEHOLDER]


class AudioPlayer:
    """Plays WAV payloads by shelling out to a player command."""

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        wait: bool = True,
        temp_dir: Optional[str | Path] = None,
    ):
        self._command = list(command) if command else default_command()
        self._wait = wait
        self._temp_dir = str(temp_dir) if temp_dir else None
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: PlayerConfig) -> "AudioPlayer":
        return cls(command=config.command, wait=config.wait, temp_dir=config.temp_dir)

    @property
    def command(self) -> List[str]:
        return list(self._command)

    @property
    def wait(self) -> bool:
        return self._wait

    def _argv(self, path: str) -> List[str]:
        argv = [part.replace(PATH_PLACEHOLDER, path) for part in self._command]
        if not any(PATH_PLACEHOLDER in part for part in self._command):
            argv.append(path)
        return argv

    def _write_temp(self, data: bytes) -> str:
        fd, path = tempfile.mkstemp(prefix="voice-queue-", suffix=".wav", dir=self._temp_dir)
        try:
            os.write(fd, data)
        except OSError:
            os.close(fd)
            self._remove(path)
            raise
        os.close(fd)
        return path

    @staticmethod
    def _remove(path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            warn(_LOG, "temp_file_cleanup_failed", path=path, error=str(e))

    async def play(self, data: bytes) -> None:
        """
        Play one WAV payload.

        Raises:
            PlaybackError: Temp file could not be written, the player could
                not be started, or (wait mode) it exited non-zero.
        """
        try:
            path = self._write_temp(data)
        except OSError as e:
            raise PlaybackError(f"could not write temp audio file: {e}") from e

        argv = self._argv(path)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self._remove(path)
            raise PlaybackError(
                f"could not start player {argv[0]!r}: {e}",
                details={"command": argv[0]},
            ) from e

        if not self._wait:
            task = asyncio.create_task(self._reap(proc, path))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            return

        try:
            _, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise
        finally:
            self._remove(path)

        if proc.returncode != 0:
            message = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise PlaybackError(
                f"player exited with status {proc.returncode}",
                details={"command": argv[0], "returncode": proc.returncode, "stderr": message[:200]},
            )
        verbose(_LOG, "played", bytes=len(data))

    async def _reap(self, proc: asyncio.subprocess.Process, path: str) -> None:
        try:
            _, stderr = await proc.communicate()
            if proc.returncode != 0:
                warn(
                    _LOG, "background_playback_failed",
                    returncode=proc.returncode,
                    error=(stderr or b"").decode("utf-8", errors="replace").strip()[:200],
                )
        finally:
            self._remove(path)

    async def drain(self) -> None:
        """Wait for fire-and-forget players still running."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
