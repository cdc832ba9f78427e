"""
OTel span event emission helpers for orchestrator runs.

All functions are guarded by ``_HAS_OTEL`` so they degrade gracefully
when OTel is not installed.

Usage::

    from bootcore.execution.otel import emit_execution_event, emit_run_report

    orchestrator = Orchestrator(config, sinks=[emit_execution_event])
    report = orchestrator.run(plan, probes)
    emit_run_report(report)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bootcore.execution.events import ExecutionEvent

if TYPE_CHECKING:
    from bootcore.report.models import Report

try:
    from opentelemetry import trace as otel_trace

    _HAS_OTEL = True
except ImportError:  # pragma: no cover
    _HAS_OTEL = False

logger = logging.getLogger(__name__)


def _add_span_event(name: str, attributes: dict[str, str | int | float | bool]) -> None:
    """Add an event to the current OTel span if available."""
    if not _HAS_OTEL:
        return
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)


def emit_execution_event(event: ExecutionEvent) -> None:
    """Emit a span event for one execution step.

    Event name: ``bootcore.<event>`` (e.g. ``bootcore.action.finished``)
    """
    attrs: dict[str, str | int | float | bool] = {
        "bootcore.action": event.action,
        "bootcore.outcome": event.outcome,
    }
    if event.attempt is not None:
        attrs["bootcore.attempt"] = event.attempt
    if event.detail:
        attrs["bootcore.detail"] = event.detail

    _add_span_event(f"bootcore.{event.event}", attrs)


def emit_run_report(report: "Report") -> None:
    """Emit a span event summarising a finished run.

    Event name: ``bootcore.run.report``
    """
    attrs: dict[str, str | int | float | bool] = {
        "bootcore.plan_id": report.plan_id,
        "bootcore.overall_status": report.overall_status.value,
        "bootcore.exit_code": report.exit_code,
        "bootcore.actions_total": len(report.plan_results),
        "bootcore.probes_total": len(report.probe_results),
        "bootcore.duration_s": report.duration,
    }
    for status, count in report.action_counts.items():
        attrs[f"bootcore.actions.{status}"] = count
    for status, count in report.probe_counts.items():
        attrs[f"bootcore.probes.{status}"] = count

    if report.exit_code == 0:
        logger.info(
            "Run %s succeeded: %d action(s), %d probe(s) in %.1fs",
            report.plan_id,
            len(report.plan_results),
            len(report.probe_results),
            report.duration,
        )
    else:
        logger.warning(
            "Run %s %s: actions=%s probes=%s",
            report.plan_id,
            report.overall_status.value.upper(),
            report.action_counts,
            report.probe_counts,
        )

    _add_span_event("bootcore.run.report", attrs)
