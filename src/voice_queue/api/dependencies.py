"""
FastAPI Dependency Injection.

Provides the dependencies route handlers receive through Depends():

    1. get_settings() - Loads and caches Settings
    2. get_speech_service() - Creates/returns the singleton SpeechService

Usage in routes:
    from voice_queue.api.dependencies import get_speech_service

    @router.post("/v1/say")
    async def say(
        req: SayRequest,
        service: SpeechService = Depends(get_speech_service),
    ):
        ...

Testing:
    Override either dependency on the app:
        app.dependency_overrides[get_speech_service] = lambda: fake_service

See Also:
    - services/speech_service.py: SpeechService class and get_service()
    - core/config.py: Settings and load_settings()
"""
from __future__ import annotations

from functools import lru_cache

from voice_queue.core.config import Settings, load_settings
from voice_queue.services.speech_service import SpeechService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The file comes from VOICE_QUEUE_SETTINGS or config/settings.yaml; a
    missing file means defaults plus environment overrides.
    """
    return load_settings(missing_ok=True)


def get_speech_service() -> SpeechService:
    """Get the singleton SpeechService, creating it on first use."""
    return get_service(get_settings())
