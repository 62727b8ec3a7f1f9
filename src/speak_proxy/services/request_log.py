"""
Per-Request Access Log.

Every /speak request produces exactly one JSON line on stdout, whatever
path it took:

    {"ts":"2026-10-19T09:12:44.031+00:00","client":"203.0.113.9","text_length":28,
     "trimmed":false,"voice":"alena","emotion":"neutral","speed":1.0,
     "status":"ok","duration_ms":412}

``ts``, ``client``, ``text_length``, ``status`` and ``duration_ms`` are always
present. ``trimmed``, ``voice``, ``emotion`` and ``speed`` only appear once
the request got through normalization.

The entry is created when the request arrives, filled in as the pipeline
advances and handed to RequestLogger.emit() once the response is out.
emit() is idempotent per entry and never raises.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from speak_proxy.core.logging import error, get_logger, info, write_access
from speak_proxy.core.metrics import metrics

_LOG = get_logger("speak-proxy.requests")


class RequestStatus(str, Enum):
    """Terminal outcome of a /speak request."""
    OK = "ok"
    BAD_REQUEST = "bad_request"
    RATE_LIMITED = "rate_limited"
    GATEWAY_ERROR = "gateway_error"
    EXCEPTION = "exception"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def utf16_length(text: str) -> int:
    """
    Length in UTF-16 code units, the unit JavaScript clients count in.

    >>> utf16_length("hi 🙂")
    5
    """
    return len(text.encode("utf-16-le")) // 2


@dataclass
class RequestLogEntry:
    """
    Mutable access record for one request.

    Attributes:
        client: Rate limiting identity of the caller.
        text_length: Length of the raw ``text`` field in UTF-16 code units
            (0 when not a string).
        ts: Arrival time, ISO-8601 UTC.
        status: Outcome; None until the pipeline finishes.
        trimmed, voice, emotion, speed: Resolved values, set after
            normalization.
        duration_ms: Handling time up to the response.
    """
    client: str
    text_length: int = 0
    ts: str = ""
    status: Optional[RequestStatus] = None
    trimmed: Optional[bool] = None
    voice: Optional[str] = None
    emotion: Optional[str] = None
    speed: Optional[float] = None
    duration_ms: Optional[int] = None
    emitted: bool = False

    def __post_init__(self) -> None:
        if not self.ts:
            self.ts = _now_iso()

    def to_dict(self) -> Dict[str, Any]:
        """Key-ordered mapping written to the access log."""
        record: Dict[str, Any] = {
            "ts": self.ts,
            "client": self.client,
            "text_length": self.text_length,
        }
        if self.trimmed is not None:
            record["trimmed"] = self.trimmed
        if self.voice is not None:
            record["voice"] = self.voice
        if self.emotion is not None:
            record["emotion"] = self.emotion
        if self.speed is not None:
            record["speed"] = self.speed
        record["status"] = self.status.value if self.status else "unknown"
        if self.duration_ms is not None:
            record["duration_ms"] = self.duration_ms
        return record


class RequestLogger:
    """
    Emits finished RequestLogEntry records.

    Args:
        sink: Receives the ordered mapping. Defaults to the stdout access
            logger; tests pass ``list.append``.
    """

    def __init__(self, sink: Callable[[Dict[str, Any]], None] = write_access):
        self._sink = sink

    def emit(self, entry: RequestLogEntry, audio_bytes: int = 0) -> None:
        """Write the entry once. Failures are reported and swallowed."""
        if entry.emitted:
            return
        entry.emitted = True

        try:
            record = entry.to_dict()
            self._sink(record)
            metrics.record_request(
                status=record["status"],
                duration=(entry.duration_ms or 0) / 1000.0,
                audio_bytes=audio_bytes,
            )
            info(
                _LOG, "request_done",
                status=record["status"],
                client=entry.client,
                seconds=(entry.duration_ms or 0) / 1000.0,
            )
        except Exception as exc:
            # The response is already on the wire; nothing to propagate to.
            error(_LOG, "access_log_failed", error=str(exc))
