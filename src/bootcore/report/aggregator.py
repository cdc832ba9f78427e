"""
Result aggregation for orchestrator runs.

Folds per-Action outcomes and probe results into one immutable
``Report`` whose exit code callers can hand straight to ``sys.exit``.

Status rules, first match wins:

1. **failed** if a required Action failed, or a probe failed and the
   failure is not explained by an optional Action (see partial).
2. **partial** if every required Action succeeded, at least one
   optional Action failed, and every failed probe covers one of those
   failed optional Actions ("platform degraded").
3. **cancelled** if the run was cancelled.
4. **succeeded** otherwise. Skips never count against success.

Usage::

    from bootcore.report import ResultAggregator

    report = ResultAggregator().aggregate(plan_results, probe_results)
    sys.exit(report.exit_code)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from bootcore.report.models import ActionOutcome, ProbeResult, Report
from bootcore.types import ActionStatus, OverallStatus, ProbeStatus

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Derives the overall status of a run."""

    def aggregate(
        self,
        plan_results: Iterable[ActionOutcome],
        probe_results: Iterable[ProbeResult],
        cancelled: bool = False,
        plan_id: str = "default",
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ) -> Report:
        actions = tuple(plan_results)
        probes = tuple(sorted(probe_results, key=lambda r: r.name))

        status = self.overall_status(actions, probes, cancelled)
        logger.debug(
            "Aggregated %d action(s), %d probe(s): %s",
            len(actions),
            len(probes),
            status.value,
        )
        return Report(
            plan_id=plan_id,
            plan_results=actions,
            probe_results=probes,
            overall_status=status,
            started_at=started_at,
            finished_at=finished_at,
        )

    @staticmethod
    def overall_status(
        actions: tuple[ActionOutcome, ...],
        probes: tuple[ProbeResult, ...],
        cancelled: bool = False,
    ) -> OverallStatus:
        required_failed = any(
            o.status == ActionStatus.FAILED and o.required for o in actions
        )
        if required_failed:
            return OverallStatus.FAILED

        failed_probes = [p for p in probes if p.status == ProbeStatus.FAIL]
        failed_optional = {
            o.name for o in actions
            if o.status == ActionStatus.FAILED and o.optional
        }

        if failed_probes:
            degraded = bool(failed_optional) and all(
                failed_optional.intersection(p.covers) for p in failed_probes
            )
            return OverallStatus.PARTIAL if degraded else OverallStatus.FAILED

        if cancelled:
            return OverallStatus.CANCELLED
        return OverallStatus.SUCCEEDED
