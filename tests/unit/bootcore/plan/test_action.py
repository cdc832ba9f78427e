"""Tests for Action, RetryPolicy and GateSpec definitions."""

from __future__ import annotations

import dataclasses

import pytest

from bootcore.plan.action import Action, GateSpec, ReadinessCheck, RetryPolicy
from bootcore.types import ActionKind, ReadinessState


def _noop(ctx):
    return None


class TestAction:
    def test_depends_on_stored_as_tuple(self):
        action = Action(name="a", kind=ActionKind.INSTALL, operation=_noop, depends_on=["x", "y"])
        assert action.depends_on == ("x", "y")

    def test_is_immutable(self):
        action = Action(name="a", kind=ActionKind.INSTALL, operation=_noop)
        with pytest.raises(dataclasses.FrozenInstanceError):
            action.name = "b"

    def test_defaults(self):
        action = Action(name="a", kind=ActionKind.APPLY_MANIFEST, operation=_noop)
        assert action.max_attempts == 1
        assert action.idempotent is True
        assert action.optional is False
        assert action.gate is None

    def test_max_attempts_from_retry(self):
        action = Action(
            name="a", kind=ActionKind.INSTALL, operation=_noop, retry=RetryPolicy(max_attempts=4)
        )
        assert action.max_attempts == 4

    def test_gate_rejected_on_probe_action(self):
        gate = GateSpec(predicate=lambda: ReadinessCheck.ready())
        with pytest.raises(ValueError, match="readiness gates"):
            Action(name="p", kind=ActionKind.PROBE, operation=_noop, gate=gate)

    @pytest.mark.parametrize("timeout", [0, -5])
    def test_timeout_must_be_positive(self, timeout):
        with pytest.raises(ValueError, match="timeout"):
            Action(name="a", kind=ActionKind.INSTALL, operation=_noop, timeout=timeout)

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            Action(name="", kind=ActionKind.INSTALL, operation=_noop)


class TestRetryPolicy:
    def test_exponential_delays(self):
        policy = RetryPolicy(max_attempts=5, backoff_initial=1, backoff_multiplier=2, backoff_max=100)
        assert [policy.delay(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 8]

    def test_delay_capped(self):
        policy = RetryPolicy(max_attempts=10, backoff_initial=5, backoff_multiplier=3, backoff_max=20)
        assert policy.delay(1) == 5
        assert policy.delay(2) == 15
        assert policy.delay(3) == 20
        assert policy.delay(8) == 20

    def test_invalid_policies(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(backoff_multiplier=0.5)
        with pytest.raises(ValueError):
            RetryPolicy(backoff_initial=-1)


class TestGateSpec:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError, match="poll_interval"):
            GateSpec(predicate=lambda: ReadinessCheck.ready(), poll_interval=0)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError, match="timeout"):
            GateSpec(predicate=lambda: ReadinessCheck.ready(), timeout=0)


class TestReadinessCheck:
    def test_constructors(self):
        assert ReadinessCheck.ready().state == ReadinessState.READY
        assert ReadinessCheck.not_ready("0/1").detail == "0/1"
        assert ReadinessCheck.error("boom").state == ReadinessState.ERROR
        assert ReadinessCheck.failed("crashloop").state == ReadinessState.FAILED
