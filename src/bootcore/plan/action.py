"""
Runtime Action definitions.

An ``Action`` is declared once at plan-construction time and never
mutated; execution state lives on the orchestrator's ``ActionOutcome``
records so the same definitions can be reused across runs.

Usage::

    from bootcore.plan.action import Action, GateSpec, RetryPolicy
    from bootcore.types import ActionKind

    argocd = Action(
        name="argocd",
        kind=ActionKind.INSTALL,
        operation=lambda ctx: client.install(spec, timeout=ctx.timeout),
        gate=GateSpec(predicate=deployment_ready, poll_interval=5, timeout=600),
        retry=RetryPolicy(max_attempts=3),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from bootcore.timeouts import (
    DEFAULT_ACTION_TIMEOUT_S,
    DEFAULT_GATE_TIMEOUT_S,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RETRY_DELAY_S,
    DEFAULT_RETRY_MAX_DELAY_S,
)
from bootcore.types import ActionKind, ReadinessState

if TYPE_CHECKING:
    from bootcore.config import BootcoreConfig
    from bootcore.execution.cancellation import CancellationToken


@dataclass(frozen=True)
class ReadinessCheck:
    """Result of evaluating a readiness predicate once."""

    state: ReadinessState
    detail: str = ""

    @classmethod
    def ready(cls, detail: str = "") -> "ReadinessCheck":
        return cls(ReadinessState.READY, detail)

    @classmethod
    def not_ready(cls, detail: str = "") -> "ReadinessCheck":
        return cls(ReadinessState.NOT_READY, detail)

    @classmethod
    def error(cls, detail: str) -> "ReadinessCheck":
        return cls(ReadinessState.ERROR, detail)

    @classmethod
    def failed(cls, detail: str) -> "ReadinessCheck":
        return cls(ReadinessState.FAILED, detail)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff retry policy.

    ``max_attempts`` counts every attempt including the first, so
    ``max_attempts=1`` means no retry.
    """

    max_attempts: int = 3
    backoff_initial: float = DEFAULT_RETRY_DELAY_S
    backoff_multiplier: float = DEFAULT_RETRY_BACKOFF
    backoff_max: float = DEFAULT_RETRY_MAX_DELAY_S

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_initial < 0 or self.backoff_max < 0:
            raise ValueError("backoff delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def delay(self, attempt: int) -> float:
        """Sleep before the retry that follows failed ``attempt`` (1-based)."""
        raw = self.backoff_initial * self.backoff_multiplier ** (attempt - 1)
        return min(raw, self.backoff_max)


@dataclass(frozen=True)
class GateSpec:
    """Readiness predicate bound to one install-class Action."""

    predicate: Callable[[], ReadinessCheck]
    poll_interval: float = DEFAULT_POLL_INTERVAL_S
    timeout: float = DEFAULT_GATE_TIMEOUT_S
    description: str = ""

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if self.timeout <= 0:
            raise ValueError("gate timeout must be > 0")


@dataclass(frozen=True)
class ActionContext:
    """Everything an operation may read while it runs."""

    action: str
    config: "BootcoreConfig"
    timeout: float
    attempt: int
    cancel: "CancellationToken"


@dataclass(frozen=True)
class Action:
    """A single named operation in a dependency plan."""

    name: str
    kind: ActionKind
    operation: Callable[[ActionContext], None]
    depends_on: tuple[str, ...] = ()
    timeout: float = DEFAULT_ACTION_TIMEOUT_S
    retry: Optional[RetryPolicy] = None
    gate: Optional[GateSpec] = None
    optional: bool = False
    idempotent: bool = True
    description: str = ""
    metadata: dict = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Action name must not be empty")
        # Accept any iterable of names but store an immutable tuple
        object.__setattr__(self, "depends_on", tuple(self.depends_on))
        if self.timeout <= 0:
            raise ValueError(f"Action '{self.name}': timeout must be > 0")
        if self.gate is not None and not self.kind.gateable:
            raise ValueError(
                f"Action '{self.name}': readiness gates are only allowed on "
                f"install and apply_manifest actions"
            )

    @property
    def max_attempts(self) -> int:
        return self.retry.max_attempts if self.retry else 1
