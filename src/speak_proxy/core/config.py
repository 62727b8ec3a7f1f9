"""
Configuration Management for speak-proxy.

Configuration Hierarchy (highest priority first):
    1. Environment variables (YANDEX_API_KEY, PORT, SPEAK_PROXY_RATE_LIMIT, ...)
    2. YAML config file (config/settings.yaml, or SPEAK_PROXY_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    normalizer:
      max_text_chars: 300
      default_voice: alena

    rate_limit:
      max_requests: 20
      window_seconds: 60

    gateway:
      url: https://tts.api.cloud.yandex.net/speech/v1/tts:synthesize
      lang: ru-RU

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from speak_proxy.core.logging.levels import coerce_level


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or inconsistent."""
    pass


class Defaults:
    """
    Centralized default configuration values.

    These reproduce the reference proxy policy: Russian-language synthesis
    through Yandex SpeechKit, MP3 output, 300 character cap and 20 requests
    per minute per client.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Normalizer
    # ─────────────────────────────────────────────────────────────────────────
    MAX_TEXT_CHARS = 300
    TRUNCATION_MARKER = "…"
    VOICES = ("alena", "oksana", "jane", "filipp", "ermil", "zahar")
    EMOTIONS = ("neutral", "good", "evil")
    DEFAULT_VOICE = "alena"
    DEFAULT_EMOTION = "neutral"
    DEFAULT_SPEED = 1.0
    MIN_SPEED = 0.5
    MAX_SPEED = 1.5

    # ─────────────────────────────────────────────────────────────────────────
    # Rate Limiting (per client identity, fixed window)
    # ─────────────────────────────────────────────────────────────────────────
    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_MAX_REQUESTS = 20
    RATE_LIMIT_WINDOW_SECONDS = 60.0

    # ─────────────────────────────────────────────────────────────────────────
    # Synthesis Gateway
    # ─────────────────────────────────────────────────────────────────────────
    GATEWAY_URL = "https://tts.api.cloud.yandex.net/speech/v1/tts:synthesize"
    GATEWAY_LANG = "ru-RU"
    GATEWAY_FORMAT = "mp3"
    GATEWAY_TIMEOUT_S = 30.0

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 3000


@dataclass
class NormalizerConfig:
    """Limits and allowed values applied to incoming /speak parameters."""
    max_text_chars: int = Defaults.MAX_TEXT_CHARS
    truncation_marker: str = Defaults.TRUNCATION_MARKER
    voices: Tuple[str, ...] = Defaults.VOICES
    emotions: Tuple[str, ...] = Defaults.EMOTIONS
    default_voice: str = Defaults.DEFAULT_VOICE
    default_emotion: str = Defaults.DEFAULT_EMOTION
    default_speed: float = Defaults.DEFAULT_SPEED
    min_speed: float = Defaults.MIN_SPEED
    max_speed: float = Defaults.MAX_SPEED


@dataclass
class RateLimitConfig:
    """Per-client request quota for the synthesis endpoint."""
    enabled: bool = Defaults.RATE_LIMIT_ENABLED
    max_requests: int = Defaults.RATE_LIMIT_MAX_REQUESTS
    window_seconds: float = Defaults.RATE_LIMIT_WINDOW_SECONDS


@dataclass
class GatewayConfig:
    """
    Outbound provider call.

    ``api_key`` is normally injected from YANDEX_API_KEY; it is never
    written to logs.
    """
    url: str = Defaults.GATEWAY_URL
    lang: str = Defaults.GATEWAY_LANG
    format: str = Defaults.GATEWAY_FORMAT
    timeout_s: float = Defaults.GATEWAY_TIMEOUT_S
    api_key: Optional[str] = field(default=None, repr=False)


@dataclass
class LoggingConfig:
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServerConfig:
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class SpeakServiceConfig:
    """
    Validated configuration for SpeakService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = SpeakServiceConfig.from_settings(settings)
        print(config.rate_limit.max_requests)
    """
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "SpeakServiceConfig":
        """
        Build typed configuration from raw settings, applying defaults.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Normalizer
        # ─────────────────────────────────────────────────────────────────────
        norm_raw = raw.get("normalizer", {}) or {}
        normalizer = NormalizerConfig(
            max_text_chars=int(norm_raw.get("max_text_chars", Defaults.MAX_TEXT_CHARS)),
            truncation_marker=str(norm_raw.get("truncation_marker", Defaults.TRUNCATION_MARKER)),
            voices=tuple(str(v) for v in norm_raw.get("voices", Defaults.VOICES)),
            emotions=tuple(str(e) for e in norm_raw.get("emotions", Defaults.EMOTIONS)),
            default_voice=str(norm_raw.get("default_voice", Defaults.DEFAULT_VOICE)),
            default_emotion=str(norm_raw.get("default_emotion", Defaults.DEFAULT_EMOTION)),
            default_speed=float(norm_raw.get("default_speed", Defaults.DEFAULT_SPEED)),
            min_speed=float(norm_raw.get("min_speed", Defaults.MIN_SPEED)),
            max_speed=float(norm_raw.get("max_speed", Defaults.MAX_SPEED)),
        )
        cls._validate_positive("normalizer.max_text_chars", normalizer.max_text_chars)
        cls._validate_positive("normalizer.min_speed", normalizer.min_speed)
        cls._validate_finite("normalizer.max_speed", normalizer.max_speed)
        cls._validate_range(
            "normalizer.default_speed",
            normalizer.default_speed,
            normalizer.min_speed,
            normalizer.max_speed,
        )
        cls._validate_member("normalizer.default_voice", normalizer.default_voice, normalizer.voices)
        cls._validate_member("normalizer.default_emotion", normalizer.default_emotion, normalizer.emotions)

        # ─────────────────────────────────────────────────────────────────────
        # Rate limiting
        # ─────────────────────────────────────────────────────────────────────
        rl_raw = raw.get("rate_limit", {}) or {}
        rate_limit = RateLimitConfig(
            enabled=bool(rl_raw.get("enabled", Defaults.RATE_LIMIT_ENABLED)),
            max_requests=int(rl_raw.get("max_requests", Defaults.RATE_LIMIT_MAX_REQUESTS)),
            window_seconds=float(rl_raw.get("window_seconds", Defaults.RATE_LIMIT_WINDOW_SECONDS)),
        )
        cls._validate_positive("rate_limit.max_requests", rate_limit.max_requests)
        cls._validate_positive("rate_limit.window_seconds", rate_limit.window_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Gateway
        # ─────────────────────────────────────────────────────────────────────
        gw_raw = raw.get("gateway", {}) or {}
        gateway = GatewayConfig(
            url=str(gw_raw.get("url", Defaults.GATEWAY_URL)),
            lang=str(gw_raw.get("lang", Defaults.GATEWAY_LANG)),
            format=str(gw_raw.get("format", Defaults.GATEWAY_FORMAT)),
            timeout_s=float(gw_raw.get("timeout_s", Defaults.GATEWAY_TIMEOUT_S)),
            api_key=gw_raw.get("api_key") or None,
        )
        cls._validate_positive("gateway.timeout_s", gateway.timeout_s)
        if not gateway.url.startswith(("http://", "https://")):
            raise ConfigValidationError(f"gateway.url must be an http(s) URL, got {gateway.url!r}")

        # ─────────────────────────────────────────────────────────────────────
        # Logging (string levels accepted, e.g. "VERBOSE")
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)
        if isinstance(log_level_raw, str):
            log_level = int(coerce_level(log_level_raw))
        else:
            log_level = int(log_level_raw)
        logging_cfg = LoggingConfig(level=log_level)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        # ─────────────────────────────────────────────────────────────────────
        # Server
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=int(server_raw.get("port", Defaults.SERVER_PORT)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)

        return cls(
            normalizer=normalizer,
            rate_limit=rate_limit,
            gateway=gateway,
            logging=logging_cfg,
            server=server,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if not value > 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_finite(name: str, value: float) -> None:
        if not math.isfinite(value):
            raise ConfigValidationError(f"{name} must be a finite number, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")

    @staticmethod
    def _validate_member(name: str, value: str, allowed: Tuple[str, ...]) -> None:
        if value not in allowed:
            raise ConfigValidationError(f"{name} must be one of {list(allowed)}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable raw settings loaded from YAML plus environment overrides.

    Use get_service_config() for the validated, typed view.
    """
    raw: Dict[str, Any]

    @property
    def provider_url(self) -> str:
        return str((self.raw.get("gateway") or {}).get("url", Defaults.GATEWAY_URL))

    @property
    def api_key(self) -> Optional[str]:
        return (self.raw.get("gateway") or {}).get("api_key") or None

    @property
    def host(self) -> str:
        return str((self.raw.get("server") or {}).get("host", Defaults.SERVER_HOST))

    @property
    def port(self) -> int:
        return int((self.raw.get("server") or {}).get("port", Defaults.SERVER_PORT))

    def get_service_config(self) -> SpeakServiceConfig:
        """
        Raises:
            ConfigValidationError: If validation fails.
        """
        return SpeakServiceConfig.from_settings(self)


def _section(raw: Dict[str, Any], name: str) -> Dict[str, Any]:
    # "gateway:" with no body loads as None
    if not isinstance(raw.get(name), dict):
        raw[name] = {}
    return raw[name]


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Layer environment variables over a raw settings mapping (in place).

    Environment variables:
        YANDEX_API_KEY: provider credential (gateway.api_key)
        SPEAK_PROXY_PROVIDER_URL: provider endpoint (gateway.url)
        HOST / PORT: listening address (server.host / server.port)
        SPEAK_PROXY_RATE_LIMIT: requests per window (rate_limit.max_requests)
        SPEAK_PROXY_RATE_WINDOW: window length in seconds (rate_limit.window_seconds)
    """
    api_key = os.getenv("YANDEX_API_KEY")
    if api_key:
        _section(raw, "gateway")["api_key"] = api_key

    provider_url = os.getenv("SPEAK_PROXY_PROVIDER_URL")
    if provider_url:
        _section(raw, "gateway")["url"] = provider_url

    host = os.getenv("HOST")
    if host:
        _section(raw, "server")["host"] = host

    port = os.getenv("PORT")
    if port:
        _section(raw, "server")["port"] = int(port)

    rate_limit = os.getenv("SPEAK_PROXY_RATE_LIMIT")
    if rate_limit:
        _section(raw, "rate_limit")["max_requests"] = int(rate_limit)

    rate_window = os.getenv("SPEAK_PROXY_RATE_WINDOW")
    if rate_window:
        _section(raw, "rate_limit")["window_seconds"] = float(rate_window)

    return raw


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML file and apply environment overrides.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    return Settings(raw=apply_env_overrides(raw))


def load_settings_or_defaults(path: Optional[str] = None) -> Settings:
    """
    Like load_settings(), but fall back to built-in defaults (plus
    environment overrides) when the file is absent. The server uses this so
    a bare ``YANDEX_API_KEY=... speak-proxy serve`` works without a config dir.
    """
    path = path or os.getenv("SPEAK_PROXY_SETTINGS", "config/settings.yaml")
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw=apply_env_overrides({}))
