"""
Speech Queue Components.

This package provides the speech-side building blocks:
    - pipeline.py: FIFO task pipeline with synthesis prefetch
    - usage_registry.py: File-backed voice claims shared across processes
    - file_lock.py: Sentinel-file lock guarding the registry
    - voicevox.py: VOICEVOX engine client
    - player.py: Playback through a platform player command
    - session_voice.py: Per-process voice selection
"""
from .file_lock import FileLock
from .pipeline import PipelineStatus, SpeechTask, TaskPipeline
from .player import AudioPlayer
from .session_voice import SessionVoice, SessionVoiceInfo
from .usage_registry import SharedUsageRegistry, UsageEntry, UsageSnapshot, UsageStatus
from .voicevox import Voice, VoicevoxClient

__all__ = [
    "AudioPlayer",
    "FileLock",
    "PipelineStatus",
    "SessionVoice",
    "SessionVoiceInfo",
    "SharedUsageRegistry",
    "SpeechTask",
    "TaskPipeline",
    "UsageEntry",
    "UsageSnapshot",
    "UsageStatus",
    "Voice",
    "VoicevoxClient",
]
