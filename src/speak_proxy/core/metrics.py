"""
Prometheus Metrics for speak-proxy.

Metrics Exposed:
    speak_requests_total{status}              - finished /speak requests by outcome
    speak_request_duration_seconds{status}    - end-to-end handling latency
    speak_gateway_duration_seconds{outcome}   - provider round-trip latency
    speak_audio_bytes_total                   - MP3 bytes returned to callers
    speak_rate_limit_clients                  - client identities currently tracked

Outcome counters are recorded once per request, next to the access log line,
so ``speak_requests_total`` and the access log always agree.

Usage:
    from speak_proxy.core.metrics import metrics

    metrics.record_request(status="ok", duration=0.42, audio_bytes=18432)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class SpeakMetrics:
    """
    Prometheus collectors in a private registry.

    A private CollectorRegistry keeps these metrics separate from anything
    else in the process and lets tests build throwaway instances.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry or CollectorRegistry()

        self._requests_total = Counter(
            "speak_requests_total",
            "Finished /speak requests",
            ["status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "speak_request_duration_seconds",
            "End-to-end /speak handling time in seconds",
            ["status"],
            buckets=(0.005, 0.05, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._gateway_duration = Histogram(
            "speak_gateway_duration_seconds",
            "Provider round-trip time in seconds",
            ["outcome"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "speak_audio_bytes_total",
            "MP3 bytes returned to callers",
            registry=self._registry,
        )
        self._rate_limit_clients = Gauge(
            "speak_rate_limit_clients",
            "Client identities with an open rate limit window",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a finished request.

        Args:
            status: Request outcome ("ok", "bad_request", "rate_limited",
                "gateway_error", "exception").
            duration: Handling time in seconds.
            audio_bytes: Size of the returned MP3, 0 for error responses.
        """
        self._requests_total.labels(status=status).inc()
        self._request_duration.labels(status=status).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_gateway(self, outcome: str, duration: float) -> None:
        """Record one provider call ("ok" or "error")."""
        self._gateway_duration.labels(outcome=outcome).observe(duration)

    def set_rate_limit_clients(self, count: int) -> None:
        self._rate_limit_clients.set(count)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Returns:
            Tuple of (content_bytes, content_type) for the /metrics endpoint.
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global instance: from speak_proxy.core.metrics import metrics
metrics = SpeakMetrics()
