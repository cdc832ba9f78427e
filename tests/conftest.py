"""
Pytest configuration and fixtures for bootcore tests.
"""

from __future__ import annotations

import os
from typing import Callable, Generator, Optional
from unittest.mock import MagicMock

import pytest

from bootcore.cluster.base import ClusterClient
from bootcore.config import BootcoreConfig, reset_config
from bootcore.execution.events import EventRecorder
from bootcore.plan.action import Action, GateSpec, ReadinessCheck, RetryPolicy
from bootcore.plan.loader import PlanLoader
from bootcore.types import ActionKind


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Isolate every test from BOOTCORE_* variables and cached state."""
    original = {k: v for k, v in os.environ.items() if k.startswith("BOOTCORE_")}
    for key in original:
        del os.environ[key]
    reset_config()
    PlanLoader.clear_cache()

    yield

    reset_config()
    PlanLoader.clear_cache()
    for key in [k for k in os.environ if k.startswith("BOOTCORE_")]:
        del os.environ[key]
    os.environ.update(original)


@pytest.fixture
def config() -> BootcoreConfig:
    """Config with telemetry export disabled."""
    return BootcoreConfig(emit_telemetry=False)


# ============================================================================
# Time Fixtures
# ============================================================================


class FakeClock:
    """Monotonic clock that only moves when slept on or advanced."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self.on_sleep: Optional[Callable[[float], bool]] = None

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> bool:
        """Advance time; return True if the ``on_sleep`` hook reports cancellation."""
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            return bool(self.on_sleep(seconds))
        return False


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


# ============================================================================
# Action Fixtures
# ============================================================================


@pytest.fixture
def make_action() -> Callable[..., Action]:
    """Factory for Actions whose operation is a MagicMock."""

    def _make(
        name: str,
        depends_on: tuple[str, ...] = (),
        kind: ActionKind = ActionKind.INSTALL,
        operation: Optional[Callable] = None,
        **kwargs,
    ) -> Action:
        return Action(
            name=name,
            kind=kind,
            operation=operation or MagicMock(name=f"{name}.operation"),
            depends_on=depends_on,
            **kwargs,
        )

    return _make


@pytest.fixture
def ready_gate() -> GateSpec:
    return GateSpec(predicate=lambda: ReadinessCheck.ready("up"), poll_interval=1, timeout=10)


@pytest.fixture
def fast_retry() -> Callable[[int], RetryPolicy]:
    def _make(max_attempts: int) -> RetryPolicy:
        return RetryPolicy(max_attempts=max_attempts, backoff_initial=1, backoff_multiplier=2, backoff_max=30)

    return _make


@pytest.fixture
def mock_cluster() -> MagicMock:
    """ClusterClient double."""
    return MagicMock(spec=ClusterClient)
