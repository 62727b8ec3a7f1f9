"""
Request Context and Logging State.

The request id lives in a ContextVar so that every log line emitted while a
``/speak`` request is being handled carries the same id, even when several
requests are interleaved on the event loop.

Module-level state holds the resolved logging configuration; it is written
once by configure_logging() and read by the log helpers.

Environment Variables:
    - SPEAK_PROXY_LOG_LEVEL: 1-4 or a level name
    - SPEAK_PROXY_LOG_DIR: directory for the JSONL debug log (off when unset)
    - SPEAK_PROXY_JSONL_FILE: JSONL file name inside the log dir
    - SPEAK_PROXY_LOG_ROTATE_BYTES: rotate the JSONL file after this size
    - SPEAK_PROXY_LOG_ROTATE_BACKUP: rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str, cfg: Dict[str, Any], key: str) -> None:
    raw = os.getenv(name)
    if not raw:
        return
    try:
        cfg[key] = int(raw)
    except ValueError:
        pass  # keep the file/default value


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve the logging section.

    Priority: environment variables, then the ``logging`` section of the
    settings file (SPEAK_PROXY_SETTINGS, default config/settings.yaml), then
    built-in defaults. A missing or unreadable settings file is not an error
    here; logging must come up before anything else can report problems.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SPEAK_PROXY_SETTINGS", "config/settings.yaml")
    try:
        from speak_proxy.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except Exception:
        pass

    if os.getenv("SPEAK_PROXY_LOG_LEVEL"):
        cfg["level"] = os.environ["SPEAK_PROXY_LOG_LEVEL"]
    if os.getenv("SPEAK_PROXY_LOG_DIR"):
        cfg["log_dir"] = os.environ["SPEAK_PROXY_LOG_DIR"]
    if os.getenv("SPEAK_PROXY_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SPEAK_PROXY_JSONL_FILE"]
    _env_int("SPEAK_PROXY_LOG_ROTATE_BYTES", cfg, "rotate_max_bytes")
    _env_int("SPEAK_PROXY_LOG_ROTATE_BACKUP", cfg, "rotate_backup_count")

    return cfg
