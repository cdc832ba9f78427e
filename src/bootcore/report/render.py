"""Console and JSON rendering of run reports."""

from __future__ import annotations

import json

import click

from bootcore.report.models import Report
from bootcore.types import ActionStatus, OverallStatus, ProbeStatus

_ACTION_BADGES = {
    ActionStatus.SUCCEEDED: ("[ OK ]", "green"),
    ActionStatus.FAILED: ("[FAIL]", "red"),
    ActionStatus.SKIPPED: ("[SKIP]", "yellow"),
    ActionStatus.CANCELLED: ("[CNCL]", "magenta"),
    ActionStatus.PENDING: ("[ -- ]", None),
    ActionStatus.RUNNING: ("[ .. ]", None),
}

_PROBE_BADGES = {
    ProbeStatus.PASS: ("[PASS]", "green"),
    ProbeStatus.FAIL: ("[FAIL]", "red"),
    ProbeStatus.SKIP: ("[SKIP]", "yellow"),
    ProbeStatus.CANCELLED: ("[CNCL]", "magenta"),
}

_OVERALL_COLORS = {
    OverallStatus.SUCCEEDED: "green",
    OverallStatus.PARTIAL: "yellow",
    OverallStatus.FAILED: "red",
    OverallStatus.CANCELLED: "magenta",
}


def _badge(text: str, color: str | None, color_enabled: bool) -> str:
    if not color_enabled or color is None:
        return text
    return click.style(text, fg=color)


def render_table(report: Report, color: bool = True) -> str:
    """Human-readable report, one line per Action and probe."""
    lines: list[str] = []
    lines.append(_badge(f"=== bootcore run: {report.plan_id} ===", "cyan", color))
    lines.append("")

    if report.plan_results:
        lines.append("Actions:")
        for outcome in report.plan_results:
            text, fg = _ACTION_BADGES[outcome.status]
            optional = " (optional)" if outcome.optional else ""
            attempts = f" attempts={outcome.attempts}" if outcome.attempts > 1 else ""
            lines.append(
                f"  {_badge(text, fg, color)} {outcome.name}{optional}"
                f" [{outcome.kind.value}] {outcome.duration:.1f}s{attempts}"
            )
            if outcome.detail and outcome.status != ActionStatus.SUCCEEDED:
                lines.append(f"      {outcome.detail}")
        lines.append("")

    if report.probe_results:
        lines.append("Probes:")
        for result in report.probe_results:
            text, fg = _PROBE_BADGES[result.status]
            lines.append(f"  {_badge(text, fg, color)} {result.name} {result.duration:.1f}s")
            if result.detail and result.status != ProbeStatus.PASS:
                lines.append(f"      {result.detail}")
        lines.append("")

    actions = ", ".join(f"{k}={v}" for k, v in sorted(report.action_counts.items())) or "none"
    probes = ", ".join(f"{k}={v}" for k, v in sorted(report.probe_counts.items())) or "none"
    lines.append(f"Actions: {actions}")
    lines.append(f"Probes:  {probes}")
    lines.append(f"Duration: {report.duration:.1f}s")

    status = report.overall_status
    status_text = _badge(status.value.upper(), _OVERALL_COLORS[status], color)
    lines.append(f"Status: {status_text} (exit {report.exit_code})")
    return "\n".join(lines)


def render_json(report: Report) -> str:
    """Machine-readable report."""
    return json.dumps(report.to_dict(), indent=2)
