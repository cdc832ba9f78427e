"""
Independent post-convergence health probes.

A ``ProbeSuite`` runs a set of mutually independent ``ProbeSpec``s on a
bounded thread pool. Probes have no ordering and no dependency graph
among themselves; each runs to completion (or its own timeout) whatever
the others do. Output order is completion order; ``Report`` sorts by name.

Outcome rules:

- A probe whose ``requires`` Actions did not all succeed is ``skip``.
- An executor that raises records ``fail`` with the fault: an
  unevaluable probe cannot be trusted as passing.
- A probe still running after its timeout records ``fail``.
- On cancellation in-flight probes get ``grace_period`` seconds; the
  rest are ``cancelled``. Probes that never started are ``cancelled``.

Worker threads cannot be interrupted. A probe recorded as timed out or
cancelled may still be executing when ``run`` returns; its eventual
result is discarded. Checks that block for long should poll the
``CancellationToken`` they receive.

Usage::

    from bootcore.probes import ProbeSpec, ProbeSuite, FunctionProbeExecutor

    suite = ProbeSuite(
        [ProbeSpec(name="namespace-exists")],
        FunctionProbeExecutor({"namespace-exists": check_namespace}),
        concurrency=4,
    )
    results = suite.run(cancel)
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from bootcore.errors import ProbeError
from bootcore.execution.cancellation import CancellationToken
from bootcore.report.models import ProbeResult
from bootcore.timeouts import (
    DEFAULT_PROBE_CONCURRENCY,
    DEFAULT_PROBE_GRACE_PERIOD_S,
    DEFAULT_PROBE_TIMEOUT_S,
)
from bootcore.types import ActionStatus, ProbeStatus

logger = logging.getLogger(__name__)

# How often the supervisor checks for cancellation and probe timeouts
_SUPERVISE_INTERVAL_S = 0.05


@dataclass(frozen=True)
class ProbeSpec:
    """Declaration of one health probe."""

    name: str
    kind: str = "custom"
    params: Mapping[str, Any] = field(default_factory=dict, hash=False)
    timeout: float = DEFAULT_PROBE_TIMEOUT_S
    requires: tuple[str, ...] = ()
    covers: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Probe name must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"Probe '{self.name}': timeout must be > 0")
        object.__setattr__(self, "requires", tuple(self.requires))
        object.__setattr__(self, "covers", tuple(self.covers))


class ProbeExecutor(ABC):
    """Runs the diagnostic logic behind a ``ProbeSpec``."""

    @abstractmethod
    def run_probe(self, spec: ProbeSpec, cancel: CancellationToken) -> ProbeResult:
        """Evaluate one probe. May raise; the suite records a ``fail``."""


ProbeCheck = Callable[[ProbeSpec, CancellationToken], Union[ProbeResult, ProbeStatus, tuple]]


class FunctionProbeExecutor(ProbeExecutor):
    """Dispatches probes by name to plain callables.

    A check may return a ``ProbeResult``, a bare ``ProbeStatus``, or a
    ``(ProbeStatus, detail)`` tuple.
    """

    def __init__(self, checks: Mapping[str, ProbeCheck]) -> None:
        self._checks = dict(checks)

    def run_probe(self, spec: ProbeSpec, cancel: CancellationToken) -> ProbeResult:
        check = self._checks.get(spec.name)
        if check is None:
            raise ProbeError(spec.name, "no check registered")
        outcome = check(spec, cancel)
        if isinstance(outcome, ProbeResult):
            return outcome
        if isinstance(outcome, ProbeStatus):
            return ProbeResult(name=spec.name, status=outcome)
        status, detail = outcome
        return ProbeResult(name=spec.name, status=ProbeStatus(status), detail=str(detail))


class ProbeSuite:
    """A collection of independent probes run on a bounded worker pool."""

    def __init__(
        self,
        probes: Iterable[ProbeSpec],
        executor: ProbeExecutor,
        concurrency: int = DEFAULT_PROBE_CONCURRENCY,
        grace_period: float = DEFAULT_PROBE_GRACE_PERIOD_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.probes = list(probes)
        names = [p.name for p in self.probes]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate probe names: {', '.join(duplicates)}")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.executor = executor
        self.concurrency = concurrency
        self.grace_period = grace_period
        self._clock = clock

    def __len__(self) -> int:
        return len(self.probes)

    def skip_all(self, detail: str) -> list[ProbeResult]:
        """Record every probe as skipped without running any."""
        return [self._result(spec, ProbeStatus.SKIP, detail) for spec in self.probes]

    def cancel_all(self, detail: str) -> list[ProbeResult]:
        """Record every probe as cancelled without running any."""
        return [self._result(spec, ProbeStatus.CANCELLED, detail) for spec in self.probes]

    def run(
        self,
        cancel: Optional[CancellationToken] = None,
        action_statuses: Optional[Mapping[str, ActionStatus]] = None,
    ) -> list[ProbeResult]:
        """Run every probe and return one result per probe.

        Args:
            cancel: Shared cancellation token.
            action_statuses: Final Action statuses of the preceding plan
                run, used for ``requires``. None (probes-only runs)
                disables the check.
        """
        cancel = cancel or CancellationToken()
        results: list[ProbeResult] = []
        runnable: list[ProbeSpec] = []

        for spec in self.probes:
            unmet = self._unmet_requirements(spec, action_statuses)
            if unmet:
                results.append(
                    self._result(spec, ProbeStatus.SKIP, f"requires {', '.join(unmet)}")
                )
            else:
                runnable.append(spec)

        if not runnable:
            return results

        started: dict[str, float] = {}
        lock = threading.Lock()
        pool = ThreadPoolExecutor(
            max_workers=min(self.concurrency, len(runnable)),
            thread_name_prefix="bootcore-probe",
        )
        futures: dict[Future, ProbeSpec] = {
            pool.submit(self._run_one, spec, cancel, started, lock): spec
            for spec in runnable
        }
        pending = set(futures)

        try:
            while pending:
                if cancel.cancelled:
                    results.extend(self._drain(pending, futures))
                    break

                done, pending = wait(
                    pending, timeout=_SUPERVISE_INTERVAL_S, return_when=FIRST_COMPLETED
                )
                results.extend(f.result() for f in done)

                now = self._clock()
                for future in list(pending):
                    spec = futures[future]
                    with lock:
                        began = started.get(spec.name)
                    if began is not None and now - began >= spec.timeout:
                        pending.discard(future)
                        logger.warning("Probe %s timed out after %gs", spec.name, spec.timeout)
                        results.append(
                            self._result(
                                spec,
                                ProbeStatus.FAIL,
                                f"timed out after {spec.timeout:g}s",
                                duration=now - began,
                            )
                        )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return results

    def _drain(self, pending: set[Future], futures: dict[Future, ProbeSpec]) -> list[ProbeResult]:
        """Give in-flight probes the grace period, then mark the rest cancelled."""
        done, still_running = wait(pending, timeout=self.grace_period)
        drained = [f.result() for f in done]
        for future in still_running:
            spec = futures[future]
            drained.append(
                self._result(
                    spec,
                    ProbeStatus.CANCELLED,
                    f"did not finish within {self.grace_period:g}s grace period",
                )
            )
        if still_running:
            logger.warning("%d probe(s) cancelled after grace period", len(still_running))
        return drained

    def _run_one(
        self,
        spec: ProbeSpec,
        cancel: CancellationToken,
        started: dict[str, float],
        lock: threading.Lock,
    ) -> ProbeResult:
        """Worker body; never raises."""
        if cancel.cancelled:
            return self._result(spec, ProbeStatus.CANCELLED, "run cancelled before probe started")

        began = self._clock()
        with lock:
            started[spec.name] = began

        try:
            result = self.executor.run_probe(spec, cancel)
            status, detail = result.status, result.detail
        except ProbeError as e:
            status, detail = ProbeStatus.FAIL, str(e)
        except Exception as e:
            logger.debug("Probe %s raised", spec.name, exc_info=True)
            status, detail = ProbeStatus.FAIL, f"probe error: {type(e).__name__}: {e}"

        duration = self._clock() - began
        log_fn = logger.warning if status == ProbeStatus.FAIL else logger.info
        log_fn("Probe %s: %s%s", spec.name, status.value, f" ({detail})" if detail else "")
        return self._result(spec, status, detail, duration=duration)

    @staticmethod
    def _unmet_requirements(
        spec: ProbeSpec,
        action_statuses: Optional[Mapping[str, ActionStatus]],
    ) -> list[str]:
        if action_statuses is None:
            return []
        unmet = []
        for name in spec.requires:
            status = action_statuses.get(name)
            if status != ActionStatus.SUCCEEDED:
                unmet.append(f"{name} ({status.value if status else 'not in plan'})")
        return unmet

    @staticmethod
    def _result(
        spec: ProbeSpec,
        status: ProbeStatus,
        detail: str,
        duration: float = 0.0,
    ) -> ProbeResult:
        return ProbeResult(
            name=spec.name,
            status=status,
            detail=detail,
            duration=max(0.0, duration),
            covers=spec.covers,
        )
