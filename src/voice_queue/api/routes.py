"""
voice-queue API Routes.

Endpoints:
    POST   /v1/say             - Queue text for speaking
    GET    /v1/queue           - Pipeline status
    DELETE /v1/queue           - Drop pending tasks and this process's claims
    GET    /v1/voices          - Voices offered by the engine
    GET    /v1/voices/in-use   - Voices claimed by any local process
    GET    /v1/session         - This process's session voice
    GET    /health             - Liveness plus queue depth
    GET    /metrics            - Prometheus metrics

Error Handling:
    Service errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>"
    }

    HTTP status codes are mapped from VoiceQueueError codes:
        - INVALID_INPUT -> 400 Bad Request
        - BACKEND_UNAVAILABLE / SYNTHESIS_FAILED -> 502 Bad Gateway
        - LOCK_UNAVAILABLE -> 503 Service Unavailable
        - anything else -> 500 Internal Server Error

Example Usage:
    curl -X POST http://localhost:8000/v1/say \\
        -H "Content-Type: application/json" \\
        -d '{"text": "テストです", "speed": 1.2}'
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from voice_queue.api.dependencies import get_speech_service
from voice_queue.api.schemas import (
    QueueStatusResponse,
    SayAck,
    SayRequest,
    SessionVoiceResponse,
    VoiceInfo,
    VoicesInUseResponse,
)
from voice_queue.core.errors import ErrorCode, VoiceQueueError
from voice_queue.core.logging import error, get_logger, set_request_id
from voice_queue.core.metrics import metrics
from voice_queue.services.speech_service import SpeechService

router = APIRouter()

_LOG = get_logger("voice-queue.api")

_STATUS_MAP = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.BACKEND_UNAVAILABLE: 502,
    ErrorCode.SYNTHESIS_FAILED: 502,
    ErrorCode.LOCK_UNAVAILABLE: 503,
}


def _error_response(err: VoiceQueueError) -> JSONResponse:
    return JSONResponse(status_code=_STATUS_MAP.get(err.code, 500), content=err.to_dict())


def _new_request_id() -> str:
    rid = uuid.uuid4().hex[:8]
    set_request_id(rid)
    return rid


@router.post("/v1/say", response_model=SayAck)
async def say(req: SayRequest, service: SpeechService = Depends(get_speech_service)):
    """
    Queue text for speaking.

    Returns as soon as the text is queued and its synthesis has finished
    (or failed and been deferred); playback happens in the background.
    """
    rid = _new_request_id()
    try:
        pending = await service.say(req.text, voice_id=req.voice_id, speed=req.speed)
    except VoiceQueueError as e:
        return _error_response(e)
    except Exception as e:
        error(_LOG, "say_failed", error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": ErrorCode.INTERNAL_ERROR,
                "message": "Internal server error",
                "request_id": rid,
            },
        )
    return SayAck(ok=True, pending=pending)


@router.get("/v1/queue", response_model=QueueStatusResponse)
def queue_status(service: SpeechService = Depends(get_speech_service)):
    return service.status().to_dict()


@router.delete("/v1/queue")
async def clear_queue(service: SpeechService = Depends(get_speech_service)):
    _new_request_id()
    dropped = await service.clear()
    return {"ok": True, "dropped": dropped}


@router.get("/v1/voices", response_model=list[VoiceInfo])
async def list_voices(service: SpeechService = Depends(get_speech_service)):
    """Flattened speaker styles; 502 when the engine cannot be reached."""
    _new_request_id()
    try:
        voices = await service.list_voices()
    except VoiceQueueError as e:
        return _error_response(e)
    return [VoiceInfo(character=v.character, name=v.name, id=v.id) for v in voices]


@router.get("/v1/voices/in-use", response_model=VoicesInUseResponse)
async def voices_in_use(service: SpeechService = Depends(get_speech_service)):
    voice_ids = await service.voices_in_use()
    return VoicesInUseResponse(voice_ids=voice_ids, client_id=service.registry.client_id)


@router.get("/v1/session", response_model=SessionVoiceResponse)
async def session_voice(service: SpeechService = Depends(get_speech_service)):
    _new_request_id()
    session = await service.session_voice()
    return SessionVoiceResponse(**session.to_dict())


@router.get("/health")
def health(service: SpeechService = Depends(get_speech_service)):
    """Liveness probe with queue depth; does not contact the engine."""
    return service.get_info()


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
