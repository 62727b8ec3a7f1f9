"""
speak-proxy: Yandex SpeechKit Text-to-Speech Proxy.

A small HTTP service that turns ``POST /speak {"text": ...}`` into an MP3
stream from Yandex SpeechKit, keeping the provider API key server-side.

Key Features:
    - Forgiving parameter handling (unknown voice/emotion fall back to
      defaults, speed is clamped, long text is shortened at a word boundary)
    - Per-client rate limiting (20 requests / 60 s by default)
    - One JSON access log line per request on stdout
    - /health and Prometheus /metrics

Example Usage:
    >>> from speak_proxy.core.config import Settings
    >>> from speak_proxy.services import SpeakService
    >>>
    >>> service = SpeakService(Settings(raw={}))
    >>> result = await service.handle({"text": "Привет"}, client="127.0.0.1")
    >>> open("out.mp3", "wb").write(result.audio.data)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
