"""
Shared enums for bootcore plans, execution and reporting.

All enums are ``str`` subclasses so they serialise cleanly into JSON
reports, log lines and OTel span attributes.
"""

from __future__ import annotations

from enum import Enum


class ActionKind(str, Enum):
    """What an Action does to the target platform."""

    INSTALL = "install"
    APPLY_MANIFEST = "apply_manifest"
    PROBE = "probe"

    @property
    def gateable(self) -> bool:
        """Only install-class actions may carry a readiness gate."""
        return self in (ActionKind.INSTALL, ActionKind.APPLY_MANIFEST)


class ActionStatus(str, Enum):
    """Execution state of an Action within one orchestrator run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self not in (ActionStatus.PENDING, ActionStatus.RUNNING)


class ReadinessState(str, Enum):
    """Single evaluation of a readiness predicate."""

    READY = "ready"
    NOT_READY = "not_ready"
    ERROR = "error"  # the check itself could not be evaluated
    FAILED = "failed"  # the target reports a terminal failure


class GateOutcome(str, Enum):
    """How a readiness poll loop ended."""

    READY = "ready"
    TIMEOUT = "timeout"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ProbeStatus(str, Enum):
    """Outcome of a single health probe."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    CANCELLED = "cancelled"


class OverallStatus(str, Enum):
    """Aggregated status of a whole run."""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    OverallStatus.SUCCEEDED: 0,
    OverallStatus.FAILED: 1,
    OverallStatus.PARTIAL: 2,
    OverallStatus.CANCELLED: 130,
}
