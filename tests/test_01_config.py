"""
Tests for configuration validation and defaults.

Tests cover:
- Defaults class values
- ServiceConfig.from_settings() - all sections
- ConfigValidationError on invalid values
- String log level coercion ("DEBUG" -> 4)
- YAML loading and environment overrides
- Settings properties
"""

import pytest

from voice_queue.core.config import (
    ConfigValidationError,
    Defaults,
    ServiceConfig,
    Settings,
    load_settings,
)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_backend_defaults(self):
        assert Defaults.BACKEND_URL == "http://127.0.0.1:50021"
        assert Defaults.BACKEND_TIMEOUT_S == 30.0

    def test_speech_defaults(self):
        assert Defaults.TTS_DEFAULT_VOICE_ID == 47
        assert Defaults.TTS_DEFAULT_SPEED == 1.0
        assert Defaults.TTS_MIN_SPEED == 0.5
        assert Defaults.TTS_MAX_SPEED == 2.0

    def test_registry_defaults(self):
        """Five minute expiry, 1 s stale lock, 5 retries 100 ms apart."""
        assert Defaults.REGISTRY_ENTRY_TTL_SECONDS == 300
        assert Defaults.REGISTRY_LOCK_TIMEOUT_SECONDS == 1.0
        assert Defaults.REGISTRY_LOCK_MAX_RETRIES == 5
        assert Defaults.REGISTRY_LOCK_RETRY_DELAY_SECONDS == 0.1
        assert Defaults.REGISTRY_FILENAME == "voice-queue-usage.json"

    def test_logging_defaults(self):
        assert Defaults.LOGGING_LEVEL == 2
        assert Defaults.LOGGING_TEXT_PREVIEW_CHARS == 40


class TestServiceConfigFromSettings:
    """Tests for ServiceConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        config = ServiceConfig.from_settings(Settings(raw={}))
        assert config.backend.url == Defaults.BACKEND_URL
        assert config.speech.default_voice_id == 47
        assert config.speech.use_session_voice is False
        assert config.player.command is None
        assert config.player.wait is True
        assert config.registry.entry_ttl_seconds == 300
        assert config.logging.level == 2

    def test_custom_values(self, tmp_path):
        settings = Settings(raw={
            "backend": {"url": "http://engine:50021/", "timeout_s": 5},
            "tts": {"default_voice_id": 3, "default_speed": 1.5, "use_session_voice": True},
            "player": {"command": ["paplay", "{path}"], "wait": False},
            "registry": {"state_dir": str(tmp_path), "entry_ttl_seconds": 60, "lock_max_retries": 10},
            "logging": {"level": 3, "text_preview_chars": 10},
        })
        config = ServiceConfig.from_settings(settings)

        assert config.backend.url == "http://engine:50021"
        assert config.backend.timeout_s == 5.0
        assert config.speech.default_voice_id == 3
        assert config.speech.default_speed == 1.5
        assert config.speech.use_session_voice is True
        assert config.player.command == ["paplay", "{path}"]
        assert config.player.wait is False
        assert config.registry.state_dir == str(tmp_path)
        assert config.registry.entry_ttl_seconds == 60.0
        assert config.registry.lock_max_retries == 10
        assert config.logging.level == 3
        assert config.logging.text_preview_chars == 10

    def test_player_command_string_is_split(self):
        config = ServiceConfig.from_settings(Settings(raw={"player": {"command": "aplay -q {path}"}}))
        assert config.player.command == ["aplay", "-q", "{path}"]

    def test_empty_player_command_rejected(self):
        with pytest.raises(ConfigValidationError):
            ServiceConfig.from_settings(Settings(raw={"player": {"command": []}}))

    def test_non_http_url_rejected(self):
        with pytest.raises(ConfigValidationError, match="backend.url"):
            ServiceConfig.from_settings(Settings(raw={"backend": {"url": "ftp://engine"}}))

    def test_speed_out_of_range_rejected(self):
        with pytest.raises(ConfigValidationError, match="default_speed"):
            ServiceConfig.from_settings(Settings(raw={"tts": {"default_speed": 2.5}}))

    def test_negative_voice_id_rejected(self):
        with pytest.raises(ConfigValidationError):
            ServiceConfig.from_settings(Settings(raw={"tts": {"default_voice_id": -1}}))

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ConfigValidationError, match="entry_ttl_seconds"):
            ServiceConfig.from_settings(Settings(raw={"registry": {"entry_ttl_seconds": 0}}))

    def test_negative_retries_rejected(self):
        with pytest.raises(ConfigValidationError):
            ServiceConfig.from_settings(Settings(raw={"registry": {"lock_max_retries": -1}}))

    def test_zero_retries_allowed(self):
        config = ServiceConfig.from_settings(Settings(raw={"registry": {"lock_max_retries": 0}}))
        assert config.registry.lock_max_retries == 0

    def test_string_log_level(self):
        config = ServiceConfig.from_settings(Settings(raw={"logging": {"level": "DEBUG"}}))
        assert config.logging.level == 4

    def test_log_level_out_of_range(self):
        with pytest.raises(ConfigValidationError, match="logging.level"):
            ServiceConfig.from_settings(Settings(raw={"logging": {"level": 5}}))


class TestLoadSettings:
    """Tests for load_settings() and environment overrides."""

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "absent.yaml"))

    def test_missing_file_ok(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.yaml"), missing_ok=True)
        assert settings.default_voice_id == 47

    def test_yaml_loaded(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("tts:\n  default_voice_id: 8\n  default_speed: 1.2\n", encoding="utf-8")

        settings = load_settings(str(path))
        assert settings.default_voice_id == 8
        assert settings.default_speed == 1.2

    def test_settings_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("backend:\n  url: http://other:1234\n", encoding="utf-8")
        monkeypatch.setenv("VOICE_QUEUE_SETTINGS", str(path))

        assert load_settings().backend_url == "http://other:1234"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("tts:\n  default_voice_id: 8\n", encoding="utf-8")
        monkeypatch.setenv("DEFAULT_VOICE_ID", "12")
        monkeypatch.setenv("DEFAULT_SPEED", "0.8")
        monkeypatch.setenv("VOICEVOX_URL", "http://voicevox:50021")

        settings = load_settings(str(path))
        assert settings.default_voice_id == 12
        assert settings.default_speed == 0.8
        assert settings.backend_url == "http://voicevox:50021"

    def test_state_dir_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VOICE_QUEUE_STATE_DIR", str(tmp_path / "shared"))
        settings = load_settings(missing_ok=True)
        assert settings.state_dir == str(tmp_path / "shared")
        assert settings.get_service_config().registry.state_dir == str(tmp_path / "shared")

    def test_invalid_voice_env_rejected(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_VOICE_ID", "zundamon")
        with pytest.raises(ConfigValidationError):
            load_settings(missing_ok=True)
