"""
Cooperative cancellation for orchestrator runs.

A single ``CancellationToken`` is shared by the orchestrator, every
readiness gate, retry backoff sleeps and the probe suite. All blocking
waits go through ``CancellationToken.wait`` so a cancel request wakes
them immediately instead of after the current sleep.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe cancel flag with an optional absolute deadline.

    Args:
        deadline: Absolute time (on ``clock``) after which the token
            reports itself cancelled with reason ``"deadline"``.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._lock = threading.Lock()
        self._clock = clock
        self.deadline = deadline

    @classmethod
    def with_timeout(
        cls,
        seconds: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ) -> "CancellationToken":
        """Token whose deadline is ``seconds`` from now (None for no deadline)."""
        deadline = clock() + seconds if seconds is not None else None
        return cls(deadline=deadline, clock=clock)

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Only the first reason is kept."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
                logger.info("Cancellation requested: %s", reason)
        self._event.set()

    @property
    def reason(self) -> Optional[str]:
        self._check_deadline()
        return self._reason

    @property
    def cancelled(self) -> bool:
        self._check_deadline()
        return self._event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    def ceiling(self, seconds: float) -> float:
        """Clamp a timeout so it never outlives the run deadline."""
        remaining = self.remaining()
        if remaining is None:
            return seconds
        return min(seconds, remaining)

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True as soon as cancelled."""
        if self.cancelled:
            return True
        timeout = self.ceiling(max(0.0, seconds))
        if self._event.wait(timeout):
            return True
        return self.cancelled

    def _check_deadline(self) -> None:
        if (
            self.deadline is not None
            and not self._event.is_set()
            and self._clock() >= self.deadline
        ):
            self.cancel("deadline")
