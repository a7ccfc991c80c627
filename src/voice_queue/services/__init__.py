"""
voice-queue Services Layer.

Business logic between the outward surfaces (API, CLI) and the speech
components.

Components:
    - speech_service.py: SpeechService class and process-wide singleton
    - validators.py: Input validation for say requests
"""
from .speech_service import SpeechService, get_service, peek_service, reset_service

__all__ = [
    "SpeechService",
    "get_service",
    "peek_service",
    "reset_service",
]
