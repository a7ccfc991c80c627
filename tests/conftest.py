"""Shared fixtures: keep every test away from the real registry and settings."""
from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, tmp_path_factory, monkeypatch):
    """Point state dir and settings at tmp_path and drop env overrides."""
    state_dir = tmp_path_factory.mktemp("state")
    monkeypatch.setenv("VOICE_QUEUE_STATE_DIR", str(state_dir))
    monkeypatch.setenv("VOICE_QUEUE_SETTINGS", str(tmp_path / "no-settings.yaml"))
    for name in ("VOICEVOX_URL", "DEFAULT_VOICE_ID", "DEFAULT_SPEED", "VOICE_QUEUE_LOG_DIR"):
        monkeypatch.delenv(name, raising=False)
    return state_dir
