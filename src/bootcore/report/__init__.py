"""
Run reports: result models, aggregation and rendering.

Public API::

    from bootcore.report import (
        # Models
        ActionOutcome,
        ProbeResult,
        Report,
        # Aggregation
        ResultAggregator,
        # Rendering
        render_json,
        render_table,
    )
"""

from bootcore.report.aggregator import ResultAggregator
from bootcore.report.models import ActionOutcome, ProbeResult, Report
from bootcore.report.render import render_json, render_table

__all__ = [
    # Models
    "ActionOutcome",
    "ProbeResult",
    "Report",
    # Aggregation
    "ResultAggregator",
    # Rendering
    "render_json",
    "render_table",
]
