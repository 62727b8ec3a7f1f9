"""
speak-proxy Structured Logging.

Two independent streams:

    Operator log (stderr, optionally a rotating JSONL file)
        Human-readable lines with numeric verbosity (1-4), request id
        correlation and key=value fields. Written through the helpers below.

    Access log (stdout)
        Exactly one compact JSON line per ``/speak`` request, written by the
        request logger through the ``speak-proxy.access`` logger. Nothing else
        is ever printed on stdout so the stream can be shipped as-is to log
        aggregation (Loki, CloudWatch, Render).

Usage:
    from speak_proxy.core.logging import get_logger, info, warn, verbose

    log = get_logger("speak-proxy.gateway")
    info(log, "gateway_ok", bytes=18432, seconds=0.41)
    verbose(log, "stage", stage="normalized")

Configuration:
    SPEAK_PROXY_LOG_LEVEL=3        # VERBOSE
    SPEAK_PROXY_NO_COLOR=1         # plain console
    SPEAK_PROXY_LOG_DIR=logs       # enable JSONL debug file
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from . import colors
from .colors import Colors, colorize, get_tag_color, supports_color
from .context import (
    get_level,
    get_level_name,
    get_log_config,
    get_request_id,
    is_configured,
    read_logging_config,
    set_configured,
    set_level,
    set_log_config,
    set_request_id,
)
from .formatters import AccessLogFormatter, ColoredConsoleFormatter, JsonlFormatter
from .levels import LEVEL_MAP, LEVEL_NAMES, LogLevel, coerce_level

ACCESS_LOGGER_NAME = "speak-proxy.access"


def _configure_access_logger() -> None:
    access = logging.getLogger(ACCESS_LOGGER_NAME)
    access.handlers = []
    access.setLevel(logging.INFO)
    # Access lines must not reach the operator console or the JSONL file.
    access.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(AccessLogFormatter())
    access.addHandler(handler)


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Configure both log streams.

    Args:
        level: Verbosity override (1-4, level name or LogLevel). When None,
            the level comes from the environment or settings file.
        force: Reconfigure even if logging was already set up.
    """
    if is_configured() and not force:
        return

    colors.USE_COLORS = supports_color()

    log_config = read_logging_config()
    set_log_config(log_config)

    current_level = coerce_level(level if level is not None else log_config.get("level", LogLevel.NORMAL))
    set_level(current_level)
    python_level = LEVEL_MAP.get(current_level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG - 10)
    root.handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(python_level)
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = log_config.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        jsonl_path = Path(log_dir) / str(log_config.get("jsonl_file", "speak-proxy.jsonl"))
        file_handler = RotatingFileHandler(
            jsonl_path,
            maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(log_config.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(logging.DEBUG - 10)
        file_handler.setFormatter(JsonlFormatter())
        root.addHandler(file_handler)

    _configure_access_logger()

    # uvicorn's own access log would duplicate ours on stdout
    logging.getLogger("uvicorn.access").disabled = True

    set_configured(True)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    if numeric_level > get_level():
        return

    seconds = fields.pop("seconds", None)
    logger.log(
        level,
        msg,
        exc_info=exc_info,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def get_logger(name: str = "speak-proxy") -> logging.Logger:
    """Get a named logger, configuring logging on first use."""
    configure_logging()
    return logging.getLogger(name)


def get_access_logger() -> logging.Logger:
    """The stdout logger reserved for per-request access lines."""
    configure_logging()
    return logging.getLogger(ACCESS_LOGGER_NAME)


def write_access(record: Dict[str, Any]) -> None:
    """Write one access line. The mapping is emitted in its own key order."""
    get_access_logger().info("request", extra={"access": record})


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 2 (NORMAL)."""
    _log(logger, logging.INFO, "INFO", msg, numeric_level=2, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 2 (NORMAL)."""
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=2, **fields)


def error(logger: logging.Logger, msg: str, exc_info: bool = False, **fields: Any) -> None:
    """Level 1 (MINIMAL)."""
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=1, exc_info=exc_info, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 2 (NORMAL)."""
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=2, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 1 (MINIMAL)."""
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=1, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 3 (VERBOSE)."""
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=3, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 4 (DEBUG)."""
    _log(logger, logging.DEBUG - 5, "DEBUG", msg, numeric_level=4, **fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "colorize",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "set_level",
    "get_level_name",
    "get_log_config",
    "AccessLogFormatter",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "ACCESS_LOGGER_NAME",
    "configure_logging",
    "get_logger",
    "get_access_logger",
    "write_access",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
