"""
Log Formatters.

Three output shapes are produced:

    AccessLogFormatter: the per-request access line on stdout. The record
        carries a ready-made, key-ordered mapping in ``record.access`` and
        the formatter prints exactly that mapping as compact JSON:
            {"ts":"2026-01-15T14:30:05.120+00:00","client":"10.0.0.7","text_length":28,...}

    JsonlFormatter: optional debug file, one JSON object per operator log line:
            {"ts":"...","level":2,"tag":"INFO","message":"gateway_ok","request_id":"abc123","extra":{...}}

    ColoredConsoleFormatter: operator console on stderr:
            14:30:05 [ INFO  ] (abc123) gateway_ok bytes=18432 0.412s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, colorize, get_status_color, get_tag_color


class AccessLogFormatter(logging.Formatter):
    """Render ``record.access`` as a single compact JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        access = getattr(record, "access", None)
        if access is None:
            access = {"message": record.getMessage()}
        return json.dumps(access, ensure_ascii=False, separators=(",", ":"))


class JsonlFormatter(logging.Formatter):
    """Operator log lines as JSON objects, for the rotating debug file."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).astimezone().isoformat()

        payload: Dict[str, Any] = {
            "ts": ts,
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Human-readable console line.

    Format: ``HH:MM:SS [ TAG ] (rid) message key=value ... 0.123s``

    The ``status`` field is colored by outcome (ok green, client errors
    yellow, server errors red) and ``seconds`` by latency.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            colorize(ts, Colors.DIM),
            colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(colorize(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(colorize(f"{k}={v}", self._field_color(k, v)))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.5:
                time_color = Colors.GREEN
            elif seconds < 2.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(colorize(f"{seconds:.3f}s", time_color))

        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))

        return " ".join(parts)

    @staticmethod
    def _field_color(key: str, value: Any) -> str:
        if key == "status" and isinstance(value, str):
            return get_status_color(value)
        if key == "remaining" and isinstance(value, int):
            return Colors.YELLOW if value <= 2 else Colors.CYAN
        return Colors.DIM
