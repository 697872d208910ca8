"""
Cancellation — a cooperative stop signal shared between the caller and the pipeline.

The HTTP layer owns the token: it arms a deadline when the request starts and
calls `cancel()` if the client goes away. The pipeline never blocks on it; it
polls `check()` at stage boundaries (once per decoded CRL and before signing)
and turns a raised signal into a TIMEOUT_ERROR on the failure track.
"""

from __future__ import annotations

import threading
import time

from railway import ErrorCode
from railway.result import Result


class Cancellation:
    """Thread-safe cancellation token with an optional monotonic deadline."""

    def __init__(self, deadline: float | None = None) -> None:
        self._event = threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> Cancellation:
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def never(cls) -> Cancellation:
        return cls()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self, stage: str) -> Result[bool]:
        """Success(True) while the operation may continue, TIMEOUT_ERROR once cancelled."""
        if self.is_cancelled():
            return Result.failure(ErrorCode.TIMEOUT_ERROR, f"operation cancelled before {stage}")
        return Result.success(True)
