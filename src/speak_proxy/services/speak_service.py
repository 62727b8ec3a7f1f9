"""
SpeakService - the /speak request pipeline.

Architecture:
    Request → Rate Limit → Normalize → Gateway → Response → Access Log

Every request walks the stages below and stops at the first failure:

    RECEIVED → RATE_LIMIT_CHECKED → NORMALIZED → GATEWAY_CALLED
             → RESPONSE_SENT → LOGGED

Whatever happens, handle() returns exactly one SpeakResult and the caller
hands that result back to complete() once the response is sent, which
writes exactly one access log line. handle() never raises: unexpected
faults become status "exception" with the fault message as the error.

Outcomes:
    ok             200  audio/mpeg body
    bad_request    400  {"error": "No text provided"}
    rate_limited   429  {"error": "Too many requests"} + RateLimit headers
    gateway_error  500  {"error": "<provider error body>"}
    exception      500  {"error": "<fault message>"}

Example:
    >>> service = SpeakService(Settings(raw={}))
    >>> result = await service.handle({"text": "Привет"}, client="10.0.0.1")
    >>> result.status
    <RequestStatus.OK: 'ok'>
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from speak_proxy.core.config import Settings, SpeakServiceConfig
from speak_proxy.core.logging import error, get_level_name, get_logger, success, verbose
from speak_proxy.core.metrics import metrics
from speak_proxy.services.gateway import AudioPayload, GatewayError, SynthesisGateway
from speak_proxy.services.normalizer import BadRequest, normalize
from speak_proxy.services.rate_limiter import RateLimiter
from speak_proxy.services.request_log import RequestLogEntry, RequestLogger, RequestStatus, utf16_length
from speak_proxy.utils.timeit import timeit

_LOG = get_logger("speak-proxy.service")

TOO_MANY_REQUESTS_MESSAGE = "Too many requests"


class RequestStage(str, Enum):
    """Pipeline position of a request."""
    RECEIVED = "received"
    RATE_LIMIT_CHECKED = "rate_limit_checked"
    NORMALIZED = "normalized"
    GATEWAY_CALLED = "gateway_called"
    RESPONSE_SENT = "response_sent"
    LOGGED = "logged"


@dataclass
class SpeakResult:
    """
    Final outcome of one /speak request.

    Exactly one of ``audio`` / ``error`` is set.

    Attributes:
        status: Terminal request status.
        log_entry: Access log record for this request.
        stage: Last pipeline stage reached.
        audio: MP3 payload on success.
        error: Message for the JSON error body.
        headers: Extra response headers (rate limit fields).
    """
    status: RequestStatus
    log_entry: RequestLogEntry
    stage: RequestStage
    audio: Optional[AudioPayload] = None
    error: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is RequestStatus.OK


def _field(body: Any, name: str) -> Any:
    # Non-object JSON bodies (lists, strings, null) carry no fields.
    if isinstance(body, dict):
        return body.get(name)
    return None


class SpeakService:
    """
    Orchestrates rate limiting, normalization, the provider call and the
    access log for /speak.

    All collaborators are injectable; by default they are built from the
    validated settings.

    Args:
        settings: Raw application settings.
        gateway: Provider client (tests pass one with an httpx.MockTransport).
        rate_limiter: Per-client limiter; ignored when rate limiting is
            disabled in the settings.
        request_logger: Access log writer.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: Optional[SynthesisGateway] = None,
        rate_limiter: Optional[RateLimiter] = None,
        request_logger: Optional[RequestLogger] = None,
    ):
        self._settings = settings
        self._config = SpeakServiceConfig.from_settings(settings)

        self._gateway = gateway or SynthesisGateway(self._config.gateway)

        self._rate_limiter: Optional[RateLimiter] = None
        if self._config.rate_limit.enabled:
            self._rate_limiter = rate_limiter or RateLimiter(
                max_requests=self._config.rate_limit.max_requests,
                window_seconds=self._config.rate_limit.window_seconds,
            )

        self._request_logger = request_logger or RequestLogger()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> SpeakServiceConfig:
        return self._config

    @property
    def gateway(self) -> SynthesisGateway:
        return self._gateway

    @property
    def rate_limiter(self) -> Optional[RateLimiter]:
        return self._rate_limiter

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        await self._gateway.start()
        success(
            _LOG, "service_started",
            provider=self._gateway.url,
            log_level=get_level_name(),
            rate_limit=self._config.rate_limit.max_requests if self._rate_limiter else "off",
        )

    async def close(self) -> None:
        await self._gateway.close()

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def handle(self, body: Any, client: str) -> SpeakResult:
        """
        Run the pipeline for one request.

        Args:
            body: Decoded JSON body (any type; None when the body was not
                valid JSON).
            client: Client identity used for rate limiting and logging.

        Returns:
            SpeakResult. Never raises.
        """
        raw_text = _field(body, "text")
        entry = RequestLogEntry(
            client=client,
            text_length=utf16_length(raw_text) if isinstance(raw_text, str) else 0,
        )

        with timeit("request") as t:
            try:
                return await self._run(body, entry, t)
            except Exception as exc:
                return self._fault(entry, t, exc)

    def fault(self, client: str, exc: BaseException) -> SpeakResult:
        """
        Result for a request that failed before the pipeline could run
        (unreadable body, client gone while reading).

        Goes through the same response and access log path as handle().
        Call it from the ``except`` block so the traceback is logged.
        """
        with timeit("request") as t:
            return self._fault(RequestLogEntry(client=client), t, exc)

    def _fault(self, entry: RequestLogEntry, t: timeit, exc: BaseException) -> SpeakResult:
        message = str(exc) or exc.__class__.__name__
        error(_LOG, "pipeline_exception", exc_info=True, error=message)
        return self._finish(entry, t, RequestStatus.EXCEPTION, RequestStage.RECEIVED, error_message=message)

    async def _run(self, body: Any, entry: RequestLogEntry, t: timeit) -> SpeakResult:
        headers: Dict[str, str] = {}

        if self._rate_limiter is not None:
            decision = self._rate_limiter.hit(entry.client)
            metrics.set_rate_limit_clients(self._rate_limiter.tracked_clients)
            headers = decision.headers()
            if not decision.allowed:
                return self._finish(
                    entry, t, RequestStatus.RATE_LIMITED, RequestStage.RECEIVED,
                    error_message=TOO_MANY_REQUESTS_MESSAGE, headers=headers,
                )
        verbose(_LOG, "stage", stage=RequestStage.RATE_LIMIT_CHECKED.value)

        outcome = normalize(
            _field(body, "text"),
            _field(body, "voice"),
            _field(body, "emotion"),
            _field(body, "speed"),
            self._config.normalizer,
        )
        if isinstance(outcome, BadRequest):
            return self._finish(
                entry, t, RequestStatus.BAD_REQUEST, RequestStage.RATE_LIMIT_CHECKED,
                error_message=outcome.message, headers=headers,
            )

        entry.trimmed = outcome.trimmed
        entry.voice = outcome.voice
        entry.emotion = outcome.emotion
        entry.speed = outcome.speed
        verbose(_LOG, "stage", stage=RequestStage.NORMALIZED.value, trimmed=outcome.trimmed)

        synthesis = await self._gateway.synthesize(outcome)

        if isinstance(synthesis, GatewayError):
            return self._finish(
                entry, t, RequestStatus.GATEWAY_ERROR, RequestStage.GATEWAY_CALLED,
                error_message=synthesis.message, headers=headers,
            )

        return self._finish(
            entry, t, RequestStatus.OK, RequestStage.GATEWAY_CALLED,
            audio=synthesis, headers=headers,
        )

    @staticmethod
    def _finish(
        entry: RequestLogEntry,
        t: timeit,
        status: RequestStatus,
        stage: RequestStage,
        audio: Optional[AudioPayload] = None,
        error_message: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> SpeakResult:
        entry.status = status
        entry.duration_ms = int(round(t.elapsed() * 1000))
        return SpeakResult(
            status=status,
            log_entry=entry,
            stage=stage,
            audio=audio,
            error=error_message,
            headers=headers or {},
        )

    def complete(self, result: SpeakResult) -> None:
        """
        Write the access log for a result whose response has been sent.

        Scheduled as a response background task by the route. Safe to call
        more than once; only the first call logs.
        """
        if result.stage is RequestStage.LOGGED:
            return
        result.stage = RequestStage.RESPONSE_SENT
        audio_bytes = len(result.audio.data) if result.audio else 0
        self._request_logger.emit(result.log_entry, audio_bytes=audio_bytes)
        result.stage = RequestStage.LOGGED

    # =========================================================================
    # Health
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """Liveness information for /health. No secrets."""
        rate_limit: Dict[str, Any] = {"enabled": self._rate_limiter is not None}
        if self._rate_limiter is not None:
            stats = self._rate_limiter.stats()
            rate_limit.update({
                "max_requests": stats.max_requests,
                "window_seconds": stats.window_seconds,
                "tracked_clients": stats.tracked_clients,
                "total_allowed": stats.total_allowed,
                "total_rejected": stats.total_rejected,
            })

        return {
            "ok": True,
            "provider_url": self._gateway.url,
            "api_key_configured": self._gateway.api_key_configured,
            "rate_limit": rate_limit,
        }


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[SpeakService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SpeakService:
    """Get or create the process-wide SpeakService (thread-safe)."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SpeakService(settings)
    return _service


def reset_service() -> None:
    """Drop the global service instance (tests)."""
    global _service
    with _service_lock:
        _service = None
