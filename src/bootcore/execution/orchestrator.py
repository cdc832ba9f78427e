"""
Plan orchestrator.

Drives a ``DependencyPlan`` on a single logical thread: Actions run
strictly in topological order, install-class Actions are followed by
their readiness gate, and failures are recorded per Action rather than
raised, so one broken component never hides the state of independent
branches of the graph.

Execution rules:

- An Action runs only if every dependency succeeded; otherwise it is
  ``skipped`` (transitively, since its dependents then see a skip).
- With a ``RetryPolicy`` a failed step is retried until the Action's
  attempt budget is used up, sleeping
  ``backoff_initial * backoff_multiplier ** (attempt - 1)`` (capped at
  ``backoff_max``) in between.
  Idempotent Actions retry only the failing step (operation or gate).
  Non-idempotent Actions retry as a whole, but first evaluate the gate
  predicate once: a target that is already ready is not touched again.
- A gate timeout is terminal for its Action even if attempts remain.
- An operation that returns after its timeout is failed.
- Cancellation (explicit or run deadline) ends gate polls and backoff
  sleeps on their next wake-up; the in-progress Action is ``cancelled``
  and every Action not yet started is ``skipped``. Nothing is rolled back.
- Probes run only when no required Action failed. If the run was
  cancelled before the probe phase, every probe is ``cancelled``.

Usage::

    from bootcore.execution import Orchestrator

    orchestrator = Orchestrator(config)
    report = orchestrator.run(plan, probes=suite, cancel=token)
    sys.exit(report.exit_code)
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from bootcore.config import BootcoreConfig, get_config
from bootcore.errors import ActionExecutionError, GateTimeoutError, RunCancelledError
from bootcore.execution.cancellation import CancellationToken
from bootcore.execution.events import EventBus, EventSink
from bootcore.execution.gate import ReadinessGate
from bootcore.execution.otel import emit_execution_event
from bootcore.logger import RunEventLogger
from bootcore.plan.action import Action, ActionContext
from bootcore.plan.dependency import DependencyPlan
from bootcore.probes.suite import ProbeSuite
from bootcore.report.aggregator import ResultAggregator
from bootcore.report.models import ActionOutcome, ProbeResult, Report
from bootcore.types import ActionStatus, GateOutcome, ProbeStatus, ReadinessState

logger = logging.getLogger(__name__)

_CANCEL_SKIP = "not started: run cancelled"


class _Cancelled(Exception):
    """Internal signal: the current Action was interrupted by cancellation."""


class Orchestrator:
    """Executes a dependency plan and its probe suite.

    Args:
        config: Immutable configuration threaded into every ActionContext.
        sinks: Event sinks. Defaults to the JSON run logger plus OTel
            span events.
        aggregator: Builds the final report.
        clock: Monotonic time source.
        sleep: Interruptible sleep returning True when cancelled; used
            for gate polling and retry backoff. Defaults to the token's
            ``wait``.
    """

    def __init__(
        self,
        config: Optional[BootcoreConfig] = None,
        sinks: Optional[Iterable[EventSink]] = None,
        aggregator: Optional[ResultAggregator] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], bool]] = None,
    ) -> None:
        self.config = config or get_config()
        self._sinks = list(sinks) if sinks is not None else None
        self.aggregator = aggregator or ResultAggregator()
        self._clock = clock
        self._sleep = sleep

    def run(
        self,
        plan: DependencyPlan,
        probes: Optional[ProbeSuite] = None,
        cancel: Optional[CancellationToken] = None,
        probes_only: bool = False,
    ) -> Report:
        """Execute the plan, then the probes, and aggregate a report."""
        cancel = cancel or CancellationToken()
        events = self._event_bus(plan.plan_id)
        started_at = datetime.now(timezone.utc)

        outcomes: dict[str, ActionOutcome] = {}
        # Set once cancellation prevented any Action or probe from running
        interrupted = False
        if probes_only:
            logger.info("Probes-only run for %s: skipping %d action(s)", plan.plan_id, len(plan))
        else:
            logger.info(
                "Starting plan %s: %s", plan.plan_id, " -> ".join(plan.execution_order)
            )
            for action in plan:
                if cancel.cancelled:
                    interrupted = True
                outcomes[action.name] = self._run_action(action, outcomes, cancel, events)

        plan_results = [outcomes[name] for name in plan.execution_order if name in outcomes]
        probe_results = self._run_probes(probes, plan_results, cancel, probes_only)

        interrupted = interrupted or (
            any(o.status == ActionStatus.CANCELLED for o in plan_results)
            or any(r.status == ProbeStatus.CANCELLED for r in probe_results)
        )
        if interrupted:
            events.emit("run.cancelled", plan.plan_id, "cancelled", detail=cancel.reason or "")

        return self.aggregator.aggregate(
            plan_results,
            probe_results,
            cancelled=interrupted,
            plan_id=plan.plan_id,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _run_action(
        self,
        action: Action,
        outcomes: dict[str, ActionOutcome],
        cancel: CancellationToken,
        events: EventBus,
    ) -> ActionOutcome:
        if cancel.cancelled:
            events.emit("action.skipped", action.name, "skipped", detail=_CANCEL_SKIP)
            return self._outcome(action, ActionStatus.SKIPPED, _CANCEL_SKIP)

        blocked = [
            f"{dep} {outcomes[dep].status.value}"
            for dep in action.depends_on
            if outcomes[dep].status != ActionStatus.SUCCEEDED
        ]
        if blocked:
            detail = "dependency not satisfied: " + ", ".join(blocked)
            events.emit("action.skipped", action.name, "skipped", detail=detail)
            logger.warning("Skipping %s: %s", action.name, detail)
            return self._outcome(action, ActionStatus.SKIPPED, detail)

        return self._execute(action, cancel, events)

    def _execute(
        self,
        action: Action,
        cancel: CancellationToken,
        events: EventBus,
    ) -> ActionOutcome:
        start = self._clock()
        attempt = 1
        gate_evaluations = 0
        gate = (
            ReadinessGate(action.name, action.gate, events, clock=self._clock, sleep=self._sleep)
            if action.gate is not None
            else None
        )
        run_operation = True

        events.emit("action.started", action.name, "running", attempt=attempt)
        logger.info("Running %s (%s)", action.name, action.kind.value)

        def finish(status: ActionStatus, detail: str = "") -> ActionOutcome:
            outcome = self._outcome(
                action,
                status,
                detail,
                attempts=attempt,
                gate_evaluations=gate_evaluations,
                duration=self._clock() - start,
            )
            events.emit("action.finished", action.name, status.value, attempt=attempt, detail=detail)
            log_fn = logger.info if status == ActionStatus.SUCCEEDED else logger.warning
            log_fn("%s %s%s", action.name, status.value, f": {detail}" if detail else "")
            return outcome

        try:
            while True:
                if run_operation:
                    if attempt > 1 and not action.idempotent and gate is not None:
                        check = gate.evaluate()
                        gate_evaluations += 1
                        if check.state == ReadinessState.READY:
                            events.emit(
                                "action.attempt", action.name, "already_ready",
                                attempt=attempt, detail=check.detail,
                            )
                            return finish(ActionStatus.SUCCEEDED, "target already ready")

                    try:
                        self._invoke(action, attempt, cancel)
                    except Exception as e:
                        if cancel.cancelled:
                            raise _Cancelled() from e
                        detail = str(e)
                        events.emit("action.attempt", action.name, "failed", attempt=attempt, detail=detail)
                        if attempt >= action.max_attempts:
                            return finish(ActionStatus.FAILED, detail)
                        self._backoff(action, attempt, cancel, events)
                        attempt += 1
                        continue
                    events.emit("action.attempt", action.name, "succeeded", attempt=attempt)

                if gate is None:
                    return finish(ActionStatus.SUCCEEDED)

                result = gate.poll(cancel, attempt=attempt)
                gate_evaluations += result.evaluations

                if result.outcome == GateOutcome.READY:
                    return finish(ActionStatus.SUCCEEDED, result.detail)
                if result.outcome == GateOutcome.CANCELLED:
                    raise _Cancelled()
                if result.outcome == GateOutcome.TIMEOUT:
                    error = GateTimeoutError(action.name, action.gate.timeout, result.detail)
                    return finish(ActionStatus.FAILED, str(error))

                # Terminal failure reported by the target
                detail = f"{action.name}: target failed: {result.detail}"
                if attempt >= action.max_attempts:
                    return finish(ActionStatus.FAILED, detail)
                self._backoff(action, attempt, cancel, events)
                attempt += 1
                run_operation = not action.idempotent

        except (_Cancelled, RunCancelledError):
            return finish(ActionStatus.CANCELLED, f"cancelled: {cancel.reason or 'cancelled'}")

    def _invoke(self, action: Action, attempt: int, cancel: CancellationToken) -> None:
        """Call the operation once; raise on failure or overrun."""
        if cancel.cancelled:
            raise RunCancelledError(cancel.reason or "cancelled")

        ctx = ActionContext(
            action=action.name,
            config=self.config,
            timeout=cancel.ceiling(action.timeout),
            attempt=attempt,
            cancel=cancel,
        )
        began = self._clock()
        action.operation(ctx)
        elapsed = self._clock() - began
        if elapsed > action.timeout:
            raise ActionExecutionError(
                action.name,
                f"operation took {elapsed:.1f}s, exceeding its {action.timeout:g}s timeout",
            )

    def _backoff(
        self,
        action: Action,
        attempt: int,
        cancel: CancellationToken,
        events: EventBus,
    ) -> None:
        """Sleep before the next attempt; raise ``_Cancelled`` if interrupted."""
        delay = action.retry.delay(attempt) if action.retry else 0.0
        events.emit(
            "action.retry",
            action.name,
            "backoff",
            attempt=attempt,
            detail=f"retrying in {delay:.1f}s ({attempt}/{action.max_attempts} used)",
        )
        sleep = self._sleep or cancel.wait
        if sleep(delay) or cancel.cancelled:
            raise _Cancelled()

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    def _run_probes(
        self,
        probes: Optional[ProbeSuite],
        plan_results: list[ActionOutcome],
        cancel: CancellationToken,
        probes_only: bool,
    ) -> list[ProbeResult]:
        if probes is None or not len(probes):
            return []
        if probes_only:
            return probes.run(cancel)

        required_failed = [
            o.name for o in plan_results
            if o.status == ActionStatus.FAILED and o.required
        ]
        if required_failed:
            return probes.skip_all(
                "plan did not converge: " + ", ".join(required_failed) + " failed"
            )
        if cancel.cancelled:
            return probes.cancel_all("run cancelled before probes")

        statuses = {o.name: o.status for o in plan_results}
        return probes.run(cancel, action_statuses=statuses)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _event_bus(self, plan_id: str) -> EventBus:
        if self._sinks is None:
            return EventBus([RunEventLogger(plan_id, self.config.service_name), emit_execution_event])
        return EventBus(self._sinks)

    @staticmethod
    def _outcome(
        action: Action,
        status: ActionStatus,
        detail: str = "",
        attempts: int = 0,
        gate_evaluations: int = 0,
        duration: float = 0.0,
    ) -> ActionOutcome:
        return ActionOutcome(
            name=action.name,
            kind=action.kind,
            status=status,
            optional=action.optional,
            attempts=attempts,
            gate_evaluations=gate_evaluations,
            detail=detail,
            duration=max(0.0, duration),
        )

