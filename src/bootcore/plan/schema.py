"""
Pydantic v2 models for the bootstrap plan YAML format.

A plan file declares the platform components to install, the manifests
to apply after them, the readiness target each one is gated on, and the
health probes to run once everything has converged.

All models use ``extra="forbid"`` to reject unknown keys at parse time.

Usage::

    from bootcore.plan.schema import PlanSpec
    import yaml

    with open("plans/a1-platform.yaml") as fh:
        raw = yaml.safe_load(fh)
    spec = PlanSpec.model_validate(raw)
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bootcore.cluster.base import ComponentSpec, ManifestSpec
from bootcore.types import ActionKind


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


class TargetRef(BaseModel):
    """A cluster object whose status decides readiness."""

    model_config = ConfigDict(extra="forbid")

    kind: str = Field(..., min_length=1, description="kubectl resource type")
    name: str = Field(..., min_length=1)
    namespace: Optional[str] = Field(None, description="Defaults to the plan namespace")
    condition: Optional[str] = Field(
        None, description="Condition type that must be True (overrides kind rules)"
    )


class RetryDecl(BaseModel):
    """Retry policy for one Action."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(3, ge=1, description="Total attempts including the first")
    backoff_initial: float = Field(1.0, ge=0, description="Delay before the first retry")
    backoff_multiplier: float = Field(2.0, ge=1)
    backoff_max: float = Field(60.0, ge=0, description="Upper bound for any delay")


class GateDecl(BaseModel):
    """Readiness gate: every target must be ready."""

    model_config = ConfigDict(extra="forbid")

    target: Optional[TargetRef] = None
    targets: list[TargetRef] = Field(default_factory=list)
    poll_interval: Optional[float] = Field(None, gt=0)
    timeout: Optional[float] = Field(None, gt=0)

    @model_validator(mode="after")
    def _require_target(self) -> "GateDecl":
        if self.target is None and not self.targets:
            raise ValueError("gate needs 'target' or 'targets'")
        return self

    @property
    def all_targets(self) -> list[TargetRef]:
        return ([self.target] if self.target else []) + list(self.targets)


class CheckDecl(BaseModel):
    """What a probe-kind Action verifies before the plan continues."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["connectivity", "resource_ready"] = "connectivity"
    target: Optional[TargetRef] = None

    @model_validator(mode="after")
    def _target_for_resource(self) -> "CheckDecl":
        if self.type == "resource_ready" and self.target is None:
            raise ValueError("resource_ready checks need a 'target'")
        return self


# ---------------------------------------------------------------------------
# Actions and probes
# ---------------------------------------------------------------------------


_PAYLOAD_FOR_KIND = {
    ActionKind.INSTALL: "component",
    ActionKind.APPLY_MANIFEST: "manifest",
    ActionKind.PROBE: "check",
}


class ActionDecl(BaseModel):
    """One Action in the plan file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    kind: ActionKind
    description: str = ""
    depends_on: list[str] = Field(default_factory=list)
    timeout: Optional[float] = Field(None, gt=0, description="Operation timeout in seconds")
    optional: bool = Field(False, description="Failure does not fail the run")
    idempotent: bool = True
    retry: Optional[RetryDecl] = None
    component: Optional[ComponentSpec] = None
    manifest: Optional[ManifestSpec] = None
    check: Optional[CheckDecl] = None
    gate: Optional[GateDecl] = None

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> "ActionDecl":
        expected = _PAYLOAD_FOR_KIND[self.kind]
        for payload in _PAYLOAD_FOR_KIND.values():
            present = getattr(self, payload) is not None
            if payload == expected and not present:
                raise ValueError(f"{self.kind.value} action '{self.name}' needs '{payload}'")
            if payload != expected and present:
                raise ValueError(
                    f"{self.kind.value} action '{self.name}' must not set '{payload}'"
                )
        if self.gate is not None and not self.kind.gateable:
            raise ValueError(f"probe action '{self.name}' cannot have a gate")
        return self


class ProbeDecl(BaseModel):
    """One health probe in the plan file."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1, description="Built-in probe kind")
    description: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    timeout: Optional[float] = Field(None, gt=0)
    requires: list[str] = Field(
        default_factory=list, description="Actions that must have succeeded"
    )
    covers: list[str] = Field(
        default_factory=list, description="Optional Actions whose health this probe reflects"
    )


# ---------------------------------------------------------------------------
# Top-level plan
# ---------------------------------------------------------------------------


class PlanSettings(BaseModel):
    """Plan-wide defaults; unset values fall back to ``BootcoreConfig``."""

    model_config = ConfigDict(extra="forbid")

    namespace: Optional[str] = None
    action_timeout: Optional[float] = Field(None, gt=0)
    poll_interval: Optional[float] = Field(None, gt=0)
    gate_timeout: Optional[float] = Field(None, gt=0)
    probe_timeout: Optional[float] = Field(None, gt=0)


class PlanSpec(BaseModel):
    """Root model for a bootstrap plan YAML file."""

    model_config = ConfigDict(extra="forbid")

    schema_version: str = Field(..., min_length=1, description="Plan schema version (e.g. 0.1.0)")
    plan_id: str = Field(..., min_length=1)
    description: Optional[str] = None
    settings: PlanSettings = Field(default_factory=PlanSettings)
    actions: list[ActionDecl] = Field(default_factory=list)
    probes: list[ProbeDecl] = Field(default_factory=list)
