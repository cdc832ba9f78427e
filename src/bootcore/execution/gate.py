"""
Readiness gate polling.

A ``ReadinessGate`` repeatedly evaluates the predicate of a ``GateSpec``
until the target is ready, the timeout elapses, the target reports a
terminal failure, or the run is cancelled.

Polling rules:

- Evaluate, then sleep ``min(poll_interval, remaining)`` if not ready.
- At most ``ceil(timeout / poll_interval)`` evaluations; the loop never
  runs past ``timeout``.
- ``error`` results (the predicate could not be evaluated, or raised)
  keep the loop going exactly like ``not_ready``; the last error detail
  is kept and reported if the gate times out.
- Sleeps go through the cancellation token, so a cancel request ends
  the poll on the next wake-up with outcome ``cancelled``.
- The run deadline, if any, caps the gate's own timeout.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from bootcore.execution.cancellation import CancellationToken
from bootcore.execution.events import EventBus
from bootcore.plan.action import GateSpec, ReadinessCheck
from bootcore.types import GateOutcome, ReadinessState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    """How one poll loop ended."""

    outcome: GateOutcome
    evaluations: int
    elapsed: float
    detail: str = ""
    last_error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.outcome == GateOutcome.READY


class ReadinessGate:
    """Polls one Action's readiness predicate.

    Args:
        action: Name of the Action the gate belongs to (for events/logs).
        spec: Predicate, poll interval and timeout.
        events: Bus receiving one ``gate.poll`` event per evaluation.
        clock: Monotonic time source.
        sleep: Interruptible sleep returning True when cancelled.
            Defaults to the token's ``wait``.
    """

    def __init__(
        self,
        action: str,
        spec: GateSpec,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], bool]] = None,
    ) -> None:
        self.action = action
        self.spec = spec
        self._events = events or EventBus()
        self._clock = clock
        self._sleep = sleep

    def evaluate(self) -> ReadinessCheck:
        """Evaluate the predicate once; exceptions become ``error``."""
        try:
            check = self.spec.predicate()
        except Exception as e:
            return ReadinessCheck.error(f"{type(e).__name__}: {e}")
        if not isinstance(check, ReadinessCheck):
            return ReadinessCheck.error(f"predicate returned {check!r}")
        return check

    def poll(self, cancel: CancellationToken, attempt: Optional[int] = None) -> GateResult:
        """Run the poll loop until a terminal outcome."""
        sleep = self._sleep or cancel.wait
        interval = self.spec.poll_interval
        timeout = cancel.ceiling(self.spec.timeout)

        start = self._clock()
        end = start + timeout
        evaluations = 0
        last_detail = ""
        last_error: Optional[str] = None

        while True:
            if cancel.cancelled:
                return self._finish(GateOutcome.CANCELLED, evaluations, start, cancel.reason or "", last_error, attempt)

            check = self.evaluate()
            evaluations += 1
            self._events.emit(
                "gate.poll",
                self.action,
                check.state.value,
                attempt=attempt,
                detail=check.detail,
            )

            if check.state == ReadinessState.READY:
                return self._finish(GateOutcome.READY, evaluations, start, check.detail, last_error, attempt)
            if check.state == ReadinessState.FAILED:
                return self._finish(GateOutcome.FAILED, evaluations, start, check.detail, last_error, attempt)
            if check.state == ReadinessState.ERROR:
                last_error = check.detail
            last_detail = check.detail

            remaining = end - self._clock()
            if remaining <= 0:
                break
            if sleep(min(interval, remaining)):
                return self._finish(GateOutcome.CANCELLED, evaluations, start, cancel.reason or "", last_error, attempt)
            if self._clock() >= end:
                break

        if cancel.cancelled:
            # The run deadline capped this gate; report it as cancellation
            return self._finish(GateOutcome.CANCELLED, evaluations, start, cancel.reason or "", last_error, attempt)

        detail = last_error or last_detail or "not ready"
        return self._finish(GateOutcome.TIMEOUT, evaluations, start, detail, last_error, attempt)

    def _finish(
        self,
        outcome: GateOutcome,
        evaluations: int,
        start: float,
        detail: str,
        last_error: Optional[str],
        attempt: Optional[int],
    ) -> GateResult:
        elapsed = self._clock() - start
        result = GateResult(
            outcome=outcome,
            evaluations=evaluations,
            elapsed=elapsed,
            detail=detail,
            last_error=last_error,
        )
        self._events.emit(
            "gate.finished",
            self.action,
            outcome.value,
            attempt=attempt,
            detail=detail,
        )
        log_fn = logger.debug if outcome == GateOutcome.READY else logger.warning
        log_fn(
            "Gate %s: %s after %d evaluation(s) in %.1fs%s",
            self.action,
            outcome.value,
            evaluations,
            elapsed,
            f" ({detail})" if detail else "",
        )
        return result
