"""
API Request/Response Schemas.

Pydantic models for the voice-queue HTTP endpoints. Field constraints
reject malformed requests with a 422 before they reach the service.

Models:
    SayRequest: Input schema for POST /v1/say
    SayAck: Acknowledgment returned once the task is queued
    QueueStatusResponse: GET /v1/queue
    VoiceInfo: One entry of GET /v1/voices
    VoicesInUseResponse: GET /v1/voices/in-use
    SessionVoiceResponse: GET /v1/session

Example Request:
    {
        "text": "ビルドが終わりました",
        "voice_id": 3,
        "speed": 1.2
    }
"""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from voice_queue.core.config import Defaults


class SayRequest(BaseModel):
    """
    Speech request for POST /v1/say.

    Attributes:
        text: Text to speak, 1-4000 characters.
        voice_id: VOICEVOX style id. None uses the session or default voice.
        speed: Speed scale 0.5-2.0. None uses the configured default.
    """
    text: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="Text to speak (1-4000 characters)",
    )
    voice_id: int | None = Field(
        default=None,
        ge=0,
        description="Voice (style) id, None for the session/default voice",
    )
    speed: float | None = Field(
        default=None,
        ge=Defaults.TTS_MIN_SPEED,
        le=Defaults.TTS_MAX_SPEED,
        description="Speed scale (0.5-2.0)",
    )


class SayAck(BaseModel):
    ok: bool = True
    pending: int


class TaskInfo(BaseModel):
    task_id: str
    text: str
    voice_id: int
    speed: float
    synthesized: bool


class QueueStatusResponse(BaseModel):
    pending_count: int
    is_executing: bool
    current_task: TaskInfo | None = None


class VoiceInfo(BaseModel):
    character: str
    name: str
    id: int


class VoicesInUseResponse(BaseModel):
    voice_ids: List[int]
    client_id: str


class SessionVoiceResponse(BaseModel):
    voice_id: int
    start_time: float
    duration_s: float
    client_id: str
