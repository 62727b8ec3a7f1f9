"""
Timing Helpers.

``timeit`` measures a block with perf_counter(). Results are read either
after the block (``t.timing``) or while it is still running
(``t.elapsed()``); the request pipeline needs the latter because the access
log duration is taken before the response leaves the process.

Example:
    with timeit("gateway") as t:
        outcome = await gateway.synthesize(request)
    print(f"{t.timing.millis} ms")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    A finished measurement.

    Attributes:
        name: What was timed ("gateway", "request").
        seconds: Duration in seconds.
        meta: Optional context attached by the caller.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None

    @property
    def millis(self) -> int:
        return int(round(self.seconds * 1000))


class timeit:
    """Context manager timing a code block."""

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.timing = Timing(name=self.name, seconds=self.elapsed(), meta=self.meta)

    def elapsed(self) -> float:
        """Seconds since the block was entered."""
        if self._t0 is None:
            raise RuntimeError(f"timeit({self.name!r}) read before the block was entered")
        return perf_counter() - self._t0
