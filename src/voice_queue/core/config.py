"""
Configuration Management for voice-queue.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (VOICEVOX_URL, VOICE_QUEUE_STATE_DIR, etc.)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    backend:
      url: http://127.0.0.1:50021

    tts:
      default_voice_id: 47
      default_speed: 1.0

    registry:
      state_dir: /tmp
      entry_ttl_seconds: 300

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a configuration value is outside acceptable bounds
    or of the wrong type.
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    These values are used when no override is provided via YAML config
    or environment variables.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis Backend (VOICEVOX engine)
    # ─────────────────────────────────────────────────────────────────────────
    BACKEND_URL = "http://127.0.0.1:50021"
    BACKEND_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Speech Defaults
    # ─────────────────────────────────────────────────────────────────────────
    TTS_DEFAULT_VOICE_ID = 47
    TTS_DEFAULT_SPEED = 1.0
    TTS_MIN_SPEED = 0.5
    TTS_MAX_SPEED = 2.0
    TTS_USE_SESSION_VOICE = False

    # ─────────────────────────────────────────────────────────────────────────
    # Playback
    # ─────────────────────────────────────────────────────────────────────────
    PLAYER_COMMAND: Optional[List[str]] = None  # None = platform default
    PLAYER_WAIT = True                           # False = fire and forget

    # ─────────────────────────────────────────────────────────────────────────
    # Shared Usage Registry
    # ─────────────────────────────────────────────────────────────────────────
    REGISTRY_FILENAME = "voice-queue-usage.json"
    REGISTRY_ENTRY_TTL_SECONDS = 300.0        # Claims expire after 5 minutes
    REGISTRY_LOCK_TIMEOUT_SECONDS = 1.0       # Older sentinels are abandoned
    REGISTRY_LOCK_MAX_RETRIES = 5
    REGISTRY_LOCK_RETRY_DELAY_SECONDS = 0.1

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 40     # Characters of text shown in logs
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class BackendConfig:
    """Synthesis backend connection settings."""
    url: str = Defaults.BACKEND_URL
    timeout_s: float = Defaults.BACKEND_TIMEOUT_S


@dataclass
class SpeechConfig:
    """
    Defaults applied to say requests.

    When use_session_voice is set, requests without an explicit voice
    use the per-process session voice instead of default_voice_id.
    """
    default_voice_id: int = Defaults.TTS_DEFAULT_VOICE_ID
    default_speed: float = Defaults.TTS_DEFAULT_SPEED
    use_session_voice: bool = Defaults.TTS_USE_SESSION_VOICE


@dataclass
class PlayerConfig:
    """Audio player settings."""
    command: Optional[List[str]] = None
    wait: bool = Defaults.PLAYER_WAIT
    temp_dir: Optional[str] = None


@dataclass
class RegistryConfig:
    """
    Shared usage registry settings.

    All cooperating processes must agree on state_dir; the registry file
    and its lock sentinel live there under fixed names.
    """
    state_dir: str = field(default_factory=tempfile.gettempdir)
    entry_ttl_seconds: float = Defaults.REGISTRY_ENTRY_TTL_SECONDS
    lock_timeout_seconds: float = Defaults.REGISTRY_LOCK_TIMEOUT_SECONDS
    lock_max_retries: int = Defaults.REGISTRY_LOCK_MAX_RETRIES
    lock_retry_delay_seconds: float = Defaults.REGISTRY_LOCK_RETRY_DELAY_SECONDS


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, errors only
        2 = NORMAL: Queue lifecycle (default)
        3 = VERBOSE: Per-task timing, registry traffic
        4 = DEBUG: Lock retries, internal state
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServiceConfig:
    """
    Validated configuration for SpeechService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.registry.entry_ttl_seconds)
    """
    backend: BackendConfig = field(default_factory=BackendConfig)
    speech: SpeechConfig = field(default_factory=SpeechConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create ServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        backend_raw = raw.get("backend", {}) or {}
        backend = BackendConfig(
            url=str(backend_raw.get("url", Defaults.BACKEND_URL)).rstrip("/"),
            timeout_s=float(backend_raw.get("timeout_s", Defaults.BACKEND_TIMEOUT_S)),
        )
        if not backend.url.startswith(("http://", "https://")):
            raise ConfigValidationError(f"backend.url must be an http(s) URL, got {backend.url!r}")
        cls._validate_positive("backend.timeout_s", backend.timeout_s)

        tts_raw = raw.get("tts", {}) or {}
        speech = SpeechConfig(
            default_voice_id=int(tts_raw.get("default_voice_id", Defaults.TTS_DEFAULT_VOICE_ID)),
            default_speed=float(tts_raw.get("default_speed", Defaults.TTS_DEFAULT_SPEED)),
            use_session_voice=bool(tts_raw.get("use_session_voice", Defaults.TTS_USE_SESSION_VOICE)),
        )
        cls._validate_non_negative("tts.default_voice_id", speech.default_voice_id)
        cls._validate_range("tts.default_speed", speech.default_speed, Defaults.TTS_MIN_SPEED, Defaults.TTS_MAX_SPEED)

        player_raw = raw.get("player", {}) or {}
        command = player_raw.get("command")
        if command is not None:
            if isinstance(command, str):
                command = command.split()
            command = [str(part) for part in command]
            if not command:
                raise ConfigValidationError("player.command must not be empty")
        player = PlayerConfig(
            command=command,
            wait=bool(player_raw.get("wait", Defaults.PLAYER_WAIT)),
            temp_dir=player_raw.get("temp_dir"),
        )

        registry_raw = raw.get("registry", {}) or {}
        registry = RegistryConfig(
            state_dir=str(registry_raw.get("state_dir") or tempfile.gettempdir()),
            entry_ttl_seconds=float(registry_raw.get("entry_ttl_seconds", Defaults.REGISTRY_ENTRY_TTL_SECONDS)),
            lock_timeout_seconds=float(
                registry_raw.get("lock_timeout_seconds", Defaults.REGISTRY_LOCK_TIMEOUT_SECONDS)
            ),
            lock_max_retries=int(registry_raw.get("lock_max_retries", Defaults.REGISTRY_LOCK_MAX_RETRIES)),
            lock_retry_delay_seconds=float(
                registry_raw.get("lock_retry_delay_seconds", Defaults.REGISTRY_LOCK_RETRY_DELAY_SECONDS)
            ),
        )
        cls._validate_positive("registry.entry_ttl_seconds", registry.entry_ttl_seconds)
        cls._validate_positive("registry.lock_timeout_seconds", registry.lock_timeout_seconds)
        cls._validate_non_negative("registry.lock_max_retries", registry.lock_max_retries)
        cls._validate_non_negative("registry.lock_retry_delay_seconds", registry.lock_retry_delay_seconds)

        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            backend=backend,
            speech=speech,
            player=player,
            registry=registry,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_service_config() to get a validated ServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def backend_url(self) -> str:
        """Get the synthesis backend base URL."""
        return str(self.raw.get("backend", {}).get("url", Defaults.BACKEND_URL))

    @property
    def default_voice_id(self) -> int:
        """Get the voice used when a request names none."""
        return int(self.raw.get("tts", {}).get("default_voice_id", Defaults.TTS_DEFAULT_VOICE_ID))

    @property
    def default_speed(self) -> float:
        """Get the speed used when a request names none."""
        return float(self.raw.get("tts", {}).get("default_speed", Defaults.TTS_DEFAULT_SPEED))

    @property
    def state_dir(self) -> str:
        """Get the directory shared by cooperating processes."""
        return str(self.raw.get("registry", {}).get("state_dir") or tempfile.gettempdir())

    def get_service_config(self) -> ServiceConfig:
        """
        Get validated ServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ServiceConfig.from_settings(self)


def _apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides in place and return raw."""
    url = os.getenv("VOICEVOX_URL")
    if url:
        raw.setdefault("backend", {})["url"] = url

    voice = os.getenv("DEFAULT_VOICE_ID")
    if voice:
        try:
            raw.setdefault("tts", {})["default_voice_id"] = int(voice)
        except ValueError:
            raise ConfigValidationError(f"DEFAULT_VOICE_ID must be an integer, got {voice!r}")

    speed = os.getenv("DEFAULT_SPEED")
    if speed:
        try:
            raw.setdefault("tts", {})["default_speed"] = float(speed)
        except ValueError:
            raise ConfigValidationError(f"DEFAULT_SPEED must be a number, got {speed!r}")

    state_dir = os.getenv("VOICE_QUEUE_STATE_DIR")
    if state_dir:
        raw.setdefault("registry", {})["state_dir"] = state_dir

    return raw


def load_settings(path: Optional[str] = None, missing_ok: bool = False) -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - VOICE_QUEUE_SETTINGS: Settings path when path is None
        - VOICEVOX_URL: backend.url
        - DEFAULT_VOICE_ID: tts.default_voice_id
        - DEFAULT_SPEED: tts.default_speed
        - VOICE_QUEUE_STATE_DIR: registry.state_dir

    Args:
        path: Path to the YAML configuration file.
        missing_ok: Return defaults (plus env overrides) when the file
            does not exist instead of raising.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the file doesn't exist and missing_ok is False.
    """
    p = Path(path or os.getenv("VOICE_QUEUE_SETTINGS", "config/settings.yaml"))
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif not missing_ok:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=_apply_env_overrides(raw))
