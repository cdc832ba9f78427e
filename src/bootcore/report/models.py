"""
Result models for orchestrator runs.

All models are frozen Pydantic v2 models with ``extra="forbid"``: a
``Report`` is created once at the end of a run and never changes, and
its exit code is a pure function of ``overall_status``.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from bootcore.types import ActionKind, ActionStatus, OverallStatus, ProbeStatus


class ActionOutcome(BaseModel):
    """Final state of one Action in one run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1)
    kind: ActionKind
    status: ActionStatus
    optional: bool = False
    attempts: int = Field(0, ge=0, description="Operation/gate attempts made")
    gate_evaluations: int = Field(0, ge=0, description="Readiness predicate evaluations")
    detail: str = Field("", description="Diagnostic detail, e.g. last error")
    duration: float = Field(0.0, ge=0, description="Wall-clock seconds")

    @property
    def required(self) -> bool:
        return not self.optional


class ProbeResult(BaseModel):
    """Outcome of one health probe."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1)
    status: ProbeStatus
    detail: str = Field("", description="Free-form diagnostic text")
    duration: float = Field(0.0, ge=0, description="Wall-clock seconds")
    covers: tuple[str, ...] = Field(
        (), description="Actions whose health this probe reflects"
    )

    @classmethod
    def passed(cls, name: str, detail: str = "") -> "ProbeResult":
        return cls(name=name, status=ProbeStatus.PASS, detail=detail)

    @classmethod
    def failed(cls, name: str, detail: str) -> "ProbeResult":
        return cls(name=name, status=ProbeStatus.FAIL, detail=detail)

    @classmethod
    def skipped(cls, name: str, detail: str) -> "ProbeResult":
        return cls(name=name, status=ProbeStatus.SKIP, detail=detail)


class Report(BaseModel):
    """Aggregated outcome of a whole run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    plan_id: str = "default"
    plan_results: tuple[ActionOutcome, ...] = ()
    probe_results: tuple[ProbeResult, ...] = ()
    overall_status: OverallStatus
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def exit_code(self) -> int:
        return self.overall_status.exit_code

    @property
    def duration(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    @property
    def action_counts(self) -> dict[str, int]:
        return dict(Counter(o.status.value for o in self.plan_results))

    @property
    def probe_counts(self) -> dict[str, int]:
        return dict(Counter(r.status.value for r in self.probe_results))

    def outcome(self, name: str) -> Optional[ActionOutcome]:
        for o in self.plan_results:
            if o.name == name:
                return o
        return None

    def probe(self, name: str) -> Optional[ProbeResult]:
        for r in self.probe_results:
            if r.name == name:
                return r
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe dict including counts and duration."""
        data = self.model_dump(mode="json")
        data["duration"] = round(self.duration, 3)
        data["action_counts"] = self.action_counts
        data["probe_counts"] = self.probe_counts
        return data
