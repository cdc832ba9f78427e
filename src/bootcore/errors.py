"""
Exception taxonomy for bootcore.

Only ``PlanConstructionError`` (and its subclasses) escapes a run. The
others are raised inside the orchestrator and probe suite, caught there,
and recorded on the per-Action or per-probe outcome.
"""

from __future__ import annotations

from typing import Iterable, Optional


class BootcoreError(Exception):
    """Base class for all bootcore errors."""


# ---------------------------------------------------------------------------
# Plan construction
# ---------------------------------------------------------------------------


class PlanConstructionError(BootcoreError):
    """The dependency plan is invalid; nothing was executed."""


class DuplicateActionError(PlanConstructionError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Action '{name}' is declared more than once")


class UnknownDependencyError(PlanConstructionError):
    def __init__(self, action: str, dependency: str) -> None:
        self.action = action
        self.dependency = dependency
        if action == dependency:
            msg = f"Action '{action}' depends on itself"
        else:
            msg = f"Action '{action}' depends on unknown action '{dependency}'"
        super().__init__(msg)


class CyclicDependencyError(PlanConstructionError):
    """Raised when Kahn's algorithm cannot drain every node."""

    def __init__(self, remaining: Iterable[str]) -> None:
        self.remaining = sorted(remaining)
        super().__init__(
            "Cyclic dependency between actions: " + ", ".join(self.remaining)
        )


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class ActionExecutionError(BootcoreError):
    """An Action's operation failed."""

    def __init__(self, action: str, message: str) -> None:
        self.action = action
        super().__init__(f"{action}: {message}")


class GateTimeoutError(BootcoreError):
    """Readiness was not reached within the gate timeout."""

    def __init__(self, action: str, timeout: float, last_detail: Optional[str] = None) -> None:
        self.action = action
        self.timeout = timeout
        self.last_detail = last_detail
        msg = f"{action}: not ready after {timeout:g}s"
        if last_detail:
            msg = f"{msg} (last: {last_detail})"
        super().__init__(msg)


class RunCancelledError(BootcoreError):
    """The run was aborted by an external signal or deadline."""

    def __init__(self, reason: str = "cancelled") -> None:
        self.reason = reason
        super().__init__(f"Run cancelled: {reason}")


class ProbeError(BootcoreError):
    """A probe's own execution faulted."""

    def __init__(self, probe: str, message: str) -> None:
        self.probe = probe
        super().__init__(f"{probe}: {message}")


class ClusterClientError(BootcoreError):
    """A cluster client call failed."""

    def __init__(
        self,
        cmd: list[str],
        returncode: Optional[int] = None,
        stderr: str = "",
        context: str = "",
    ) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        self.context = context
        msg = f"Command failed: {' '.join(cmd)}"
        if returncode is not None:
            msg = f"{msg} (exit {returncode})"
        if context:
            msg = f"{context}: {msg}"
        if stderr:
            msg = f"{msg}\n{stderr.strip()}"
        super().__init__(msg)


class ResourceNotFoundError(ClusterClientError):
    """The requested cluster object does not exist."""
