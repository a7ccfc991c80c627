"""
voice-queue HTTP API.

Modules:
    - routes.py: Endpoints (/v1/say, /v1/queue, /v1/voices, /health, /metrics)
    - schemas.py: Pydantic request/response models
    - dependencies.py: Settings and service injection
"""
