"""Shared fixtures: a stubbed provider and services wired to it."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl

import httpx
import pytest

from speak_proxy.core.config import Settings, SpeakServiceConfig
from speak_proxy.services.gateway import SynthesisGateway
from speak_proxy.services.rate_limiter import RateLimiter
from speak_proxy.services.request_log import RequestLogger
from speak_proxy.services.speak_service import SpeakService

# ID3 header followed by MPEG frame sync bytes
MP3_BYTES = b"ID3\x03\x00\x00\x00\x00\x00\x00" + b"\xff\xfb\x90\x64" * 64

_ENV_VARS = (
    "SPEAK_PROXY_SETTINGS",
    "YANDEX_API_KEY",
    "SPEAK_PROXY_PROVIDER_URL",
    "SPEAK_PROXY_RATE_LIMIT",
    "SPEAK_PROXY_RATE_WINDOW",
    "HOST",
    "PORT",
)


class ProviderStub:
    """
    Stands in for SpeechKit behind an httpx.MockTransport.

    Records every request and answers with a canned response, or raises
    ``exc`` to simulate a transport failure.
    """

    def __init__(self, status_code: int = 200, content: bytes = MP3_BYTES, exc: Optional[Exception] = None):
        self.status_code = status_code
        self.content = content
        self.exc = exc
        self.calls: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status_code, content=self.content)

    @property
    def forms(self) -> List[Dict[str, str]]:
        return [dict(parse_qsl(r.content.decode("utf-8"))) for r in self.calls]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


class ExplodingGateway(SynthesisGateway):
    """Gateway whose synthesize() fails with a programming error."""

    async def synthesize(self, request):
        raise RuntimeError("kaboom")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def provider() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def access_lines() -> List[Dict[str, Any]]:
    """Access log records written by services built with make_service."""
    return []


@pytest.fixture
def make_service(provider, access_lines):
    """Build a SpeakService whose provider calls go to ``provider``."""

    def _make(
        raw: Optional[Dict[str, Any]] = None,
        stub: Optional[ProviderStub] = None,
        rate_limiter: Optional[RateLimiter] = None,
        gateway: Optional[SynthesisGateway] = None,
    ) -> SpeakService:
        settings = Settings(raw=raw if raw is not None else {"gateway": {"api_key": "test-key"}})
        config = SpeakServiceConfig.from_settings(settings)
        if gateway is None:
            gateway = SynthesisGateway(config.gateway, transport=(stub or provider).transport())
        return SpeakService(
            settings,
            gateway=gateway,
            rate_limiter=rate_limiter,
            request_logger=RequestLogger(sink=access_lines.append),
        )

    return _make
