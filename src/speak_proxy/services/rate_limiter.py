"""
Per-Client Rate Limiting for /speak.

Each client identity gets a fixed window: the first request opens a window
of ``window_seconds``; up to ``max_requests`` requests are admitted inside it
and the rest are rejected until the window expires. The reference policy is
20 requests per 60 seconds.

Client identity:
    The X-Forwarded-For header value when present (the service normally runs
    behind a platform proxy such as Render or a load balancer), otherwise the
    transport peer address.

Atomicity:
    hit() performs check-and-increment under a single threading.Lock, so two
    concurrent requests from the same client can never both take the last
    slot. The lock is never held across an await.

Scaling note:
    Counters live in process memory. With several worker processes each one
    enforces its own quota; a shared store would be needed for a global one.

Usage:
    limiter = RateLimiter(max_requests=20, window_seconds=60)
    decision = limiter.hit(client_identity(headers.get("x-forwarded-for"), peer))
    if not decision.allowed:
        return 429, decision.headers()
"""
from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from speak_proxy.core.logging import debug, get_logger, info

_LOG = get_logger("speak-proxy.rate_limiter")

UNKNOWN_CLIENT = "unknown"


def client_identity(forwarded_for: Optional[str], peer: Optional[str]) -> str:
    """Rate limiting key: forwarded-for header value, else peer address."""
    if forwarded_for and forwarded_for.strip():
        return forwarded_for.strip()
    if peer:
        return peer
    return UNKNOWN_CLIENT


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Outcome of one hit().

    Attributes:
        allowed: Whether the request is admitted.
        limit: Requests allowed per window.
        remaining: Requests left in the current window after this one.
        reset_after: Seconds until the current window closes.
        window_seconds: Window length, for the policy header.
    """
    allowed: bool
    limit: int
    remaining: int
    reset_after: float
    window_seconds: float

    def headers(self) -> Dict[str, str]:
        """
        Standard rate limit response headers (IETF RateLimit draft fields),
        plus Retry-After on rejections.
        """
        reset = max(1, math.ceil(self.reset_after))
        headers = {
            "RateLimit-Policy": f"{self.limit};w={int(self.window_seconds)}",
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(reset),
        }
        if not self.allowed:
            headers["Retry-After"] = str(reset)
        return headers


@dataclass
class RateLimitStats:
    """Snapshot for the health endpoint."""
    max_requests: int
    window_seconds: float
    tracked_clients: int
    total_allowed: int
    total_rejected: int


class RateLimiter:
    """
    Fixed-window request counter keyed by client identity.

    Args:
        max_requests: Requests admitted per window.
        window_seconds: Window length.
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

        self._lock = threading.Lock()
        # client -> [count, window_start]
        self._windows: Dict[str, list] = {}
        self._last_prune = clock()

        self._total_allowed = 0
        self._total_rejected = 0

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it is admitted."""
        with self._lock:
            now = self._clock()
            self._prune_locked(now)

            window = self._windows.get(key)
            if window is None or now - window[1] >= self.window_seconds:
                window = [0, now]
                self._windows[key] = window

            window[0] += 1
            count, started = window
            allowed = count <= self.max_requests
            if allowed:
                self._total_allowed += 1
            else:
                self._total_rejected += 1

            decision = RateLimitDecision(
                allowed=allowed,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - count),
                reset_after=max(0.0, started + self.window_seconds - now),
                window_seconds=self.window_seconds,
            )

        debug(_LOG, "rate_limit_hit", client=key, count=count, allowed=allowed)
        return decision

    def _prune_locked(self, now: float) -> None:
        # Drop closed windows at most once per window length.
        if now - self._last_prune < self.window_seconds:
            return
        expired = [k for k, (_, started) in self._windows.items() if now - started >= self.window_seconds]
        for k in expired:
            del self._windows[k]
        self._last_prune = now

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._windows)

    def stats(self) -> RateLimitStats:
        with self._lock:
            return RateLimitStats(
                max_requests=self.max_requests,
                window_seconds=self.window_seconds,
                tracked_clients=len(self._windows),
                total_allowed=self._total_allowed,
                total_rejected=self._total_rejected,
            )

    def reset(self) -> None:
        """Forget all windows (tests, config reload)."""
        with self._lock:
            self._windows.clear()
            self._last_prune = self._clock()
        info(_LOG, "rate_limiter_reset")
