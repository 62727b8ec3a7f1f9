"""
Synthesis Gateway: the outbound call to Yandex SpeechKit.

One validated SynthesisRequest becomes exactly one POST to the provider:

    POST https://tts.api.cloud.yandex.net/speech/v1/tts:synthesize
    Authorization: Api-Key <key>
    Content-Type: application/x-www-form-urlencoded

    text=...&lang=ru-RU&voice=alena&emotion=neutral&speed=1.0&format=mp3

The result is a value, not an exception:
    - 2xx: AudioPayload with the full MP3 body
    - non-2xx: GatewayError carrying the provider's error body as text
    - transport failure (DNS, connect, timeout): GatewayError with the
      httpx error message

There are no retries; each request is a single best-effort attempt.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Union

import httpx

from speak_proxy.core.config import GatewayConfig
from speak_proxy.core.logging import error, get_logger, verbose, warn
from speak_proxy.core.metrics import metrics
from speak_proxy.services.normalizer import SynthesisRequest
from speak_proxy.utils.timeit import timeit

_LOG = get_logger("speak-proxy.gateway")

AUDIO_MIME = "audio/mpeg"


@dataclass(frozen=True)
class AudioPayload:
    """Synthesized audio returned by the provider."""
    data: bytes
    mime: str = AUDIO_MIME


@dataclass(frozen=True)
class GatewayError:
    """
    The provider call failed.

    Attributes:
        message: Provider error body, or the transport error description.
        status_code: Provider HTTP status, None when no response arrived.
    """
    message: str
    status_code: Optional[int] = None


SynthesisOutcome = Union[AudioPayload, GatewayError]


class SynthesisGateway:
    """
    Thin async wrapper around the provider's synthesis endpoint.

    The HTTP client is opened by start() (application startup) and closed by
    close(). synthesize() opens one lazily if start() was never called, so
    the gateway also works from the CLI and from tests without a lifespan.

    Args:
        config: Provider URL, language, format, timeout and API key.
        transport: Optional httpx transport (httpx.MockTransport in tests).
    """

    def __init__(self, config: Optional[GatewayConfig] = None, transport: httpx.AsyncBaseTransport | None = None):
        self._config = config or GatewayConfig()
        self._timeout = httpx.Timeout(self._config.timeout_s, connect=5.0)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return self._config.url

    @property
    def api_key_configured(self) -> bool:
        return bool(self._config.api_key)

    async def start(self) -> None:
        if self._client is not None:
            return
        if not self._config.api_key:
            warn(_LOG, "api_key_missing", hint="set YANDEX_API_KEY")
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_form(self, request: SynthesisRequest) -> Dict[str, str]:
        """Form fields sent to the provider, in provider order."""
        return {
            "text": request.text,
            "lang": self._config.lang,
            "voice": request.voice,
            "emotion": request.emotion,
            "speed": str(request.speed),
            "format": self._config.format,
        }

    def build_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Api-Key {self._config.api_key or ''}"}

    async def synthesize(self, request: SynthesisRequest) -> SynthesisOutcome:
        """
        Issue the provider call for one request.

        Never raises for provider or network failures; those come back as
        GatewayError.
        """
        if self._client is None:
            await self.start()
        if self._client is None:
            raise RuntimeError("gateway HTTP client failed to start")

        with timeit("gateway") as t:
            try:
                resp = await self._client.post(
                    self._config.url,
                    data=self.build_form(request),
                    headers=self.build_headers(),
                )
            except httpx.HTTPError as exc:
                outcome: SynthesisOutcome = GatewayError(str(exc) or exc.__class__.__name__)
            else:
                if resp.is_success:
                    outcome = AudioPayload(data=resp.content)
                else:
                    outcome = GatewayError(resp.text, status_code=resp.status_code)

        seconds = t.timing.seconds
        if isinstance(outcome, AudioPayload):
            metrics.record_gateway("ok", seconds)
            verbose(_LOG, "gateway_ok", bytes=len(outcome.data), seconds=seconds)
        else:
            metrics.record_gateway("error", seconds)
            error(_LOG, "gateway_error", provider_status=outcome.status_code, detail=outcome.message[:200], seconds=seconds)
        return outcome
