"""
Turns a validated ``PlanSpec`` into runtime objects.

The builder binds each declared Action to a ``ClusterClient`` call and
each gate to a readiness predicate over its targets, then constructs the
``DependencyPlan`` (which validates the graph) and the ``ProbeSuite``.

Usage::

    from bootcore.plan.builder import PlanBuilder

    built = PlanBuilder(client, config).build(spec)
    report = Orchestrator(config).run(built.plan, probes=built.probes)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from bootcore.cluster.base import ClusterClient, ResourceRef
from bootcore.cluster.status import gate_predicate
from bootcore.config import BootcoreConfig
from bootcore.errors import ActionExecutionError, PlanConstructionError
from bootcore.plan.action import Action, ActionContext, GateSpec, ReadinessCheck, RetryPolicy
from bootcore.plan.dependency import DependencyPlan
from bootcore.plan.schema import ActionDecl, CheckDecl, GateDecl, PlanSpec, ProbeDecl, TargetRef
from bootcore.probes.builtin import ClusterProbeExecutor
from bootcore.probes.suite import ProbeExecutor, ProbeSpec, ProbeSuite
from bootcore.types import ActionKind, ReadinessState

logger = logging.getLogger(__name__)

# Worst state wins when a gate has several targets
_SEVERITY = {
    ReadinessState.READY: 0,
    ReadinessState.NOT_READY: 1,
    ReadinessState.ERROR: 2,
    ReadinessState.FAILED: 3,
}


@dataclass(frozen=True)
class BuiltPlan:
    """Runtime plan and probe suite built from one plan file."""

    spec: PlanSpec
    plan: DependencyPlan
    probes: ProbeSuite


def combine_checks(checks: list[ReadinessCheck]) -> ReadinessCheck:
    """Fold several readiness checks into one; the worst state wins."""
    if not checks:
        return ReadinessCheck.not_ready("no targets")
    worst = max(checks, key=lambda c: _SEVERITY[c.state])
    if worst.state == ReadinessState.READY:
        return ReadinessCheck.ready("; ".join(c.detail for c in checks if c.detail))
    blocking = [c.detail for c in checks if c.state != ReadinessState.READY and c.detail]
    return ReadinessCheck(worst.state, "; ".join(blocking))


class PlanBuilder:
    """Builds ``DependencyPlan`` and ``ProbeSuite`` from a ``PlanSpec``.

    Args:
        client: Cluster client every operation, gate and probe goes through.
        config: Supplies defaults the plan file does not set.
        probe_executor: Overrides the built-in ``ClusterProbeExecutor``.
    """

    def __init__(
        self,
        client: ClusterClient,
        config: BootcoreConfig,
        probe_executor: Optional[ProbeExecutor] = None,
    ) -> None:
        self.client = client
        self.config = config
        self._probe_executor = probe_executor

    def build(self, spec: PlanSpec) -> BuiltPlan:
        """Build the runtime plan.

        Raises:
            PlanConstructionError: On duplicate names, unknown or cyclic
                dependencies, or probes naming unknown Actions.
        """
        plan = DependencyPlan(
            [self.build_action(spec, decl) for decl in spec.actions],
            plan_id=spec.plan_id,
        )
        probes = self.build_probes(spec, plan)
        logger.debug(
            "Built plan %s: %d action(s), %d probe(s)", spec.plan_id, len(plan), len(probes)
        )
        return BuiltPlan(spec=spec, plan=plan, probes=probes)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _namespace(self, spec: PlanSpec) -> str:
        return spec.settings.namespace or self.config.default_namespace

    def build_action(self, spec: PlanSpec, decl: ActionDecl) -> Action:
        timeout = decl.timeout or spec.settings.action_timeout or self.config.default_action_timeout
        retry = (
            RetryPolicy(
                max_attempts=decl.retry.max_attempts,
                backoff_initial=decl.retry.backoff_initial,
                backoff_multiplier=decl.retry.backoff_multiplier,
                backoff_max=decl.retry.backoff_max,
            )
            if decl.retry
            else None
        )
        return Action(
            name=decl.name,
            kind=decl.kind,
            operation=self._operation(spec, decl),
            depends_on=tuple(decl.depends_on),
            timeout=timeout,
            retry=retry,
            gate=self._gate(spec, decl.gate) if decl.gate else None,
            optional=decl.optional,
            idempotent=decl.idempotent,
            description=decl.description,
        )

    def _operation(self, spec: PlanSpec, decl: ActionDecl) -> Callable[[ActionContext], None]:
        client = self.client

        if decl.kind == ActionKind.INSTALL:
            component = decl.component
            if component.namespace is None:
                component = component.model_copy(update={"namespace": self._namespace(spec)})

            def install(ctx: ActionContext) -> None:
                client.install(component, timeout=ctx.timeout)

            return install

        if decl.kind == ActionKind.APPLY_MANIFEST:
            manifest = decl.manifest

            def apply(ctx: ActionContext) -> None:
                client.apply_manifest(manifest, timeout=ctx.timeout)

            return apply

        return self._check_operation(spec, decl.name, decl.check)

    def _check_operation(
        self, spec: PlanSpec, name: str, check: CheckDecl
    ) -> Callable[[ActionContext], None]:
        if check.type == "connectivity":
            def connectivity(ctx: ActionContext) -> None:
                self.client.check_connectivity()

            return connectivity

        predicate = self._target_predicate(spec, check.target)

        def resource_ready(ctx: ActionContext) -> None:
            result = predicate()
            if result.state != ReadinessState.READY:
                raise ActionExecutionError(name, f"{result.state.value}: {result.detail}")

        return resource_ready

    def _target_predicate(self, spec: PlanSpec, target: TargetRef) -> Callable[[], ReadinessCheck]:
        ref = ResourceRef(
            kind=target.kind,
            name=target.name,
            namespace=target.namespace or self._namespace(spec),
        )
        return gate_predicate(self.client, ref, condition=target.condition)

    def _gate(self, spec: PlanSpec, decl: GateDecl) -> GateSpec:
        predicates = [self._target_predicate(spec, t) for t in decl.all_targets]

        def predicate() -> ReadinessCheck:
            return combine_checks([p() for p in predicates])

        return GateSpec(
            predicate=predicate,
            poll_interval=decl.poll_interval or spec.settings.poll_interval or self.config.default_poll_interval,
            timeout=decl.timeout or spec.settings.gate_timeout or self.config.default_gate_timeout,
            description=", ".join(f"{t.kind}/{t.name}" for t in decl.all_targets),
        )

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    def build_probes(self, spec: PlanSpec, plan: DependencyPlan) -> ProbeSuite:
        for decl in spec.probes:
            for name in (*decl.requires, *decl.covers):
                if name not in plan:
                    raise PlanConstructionError(
                        f"Probe '{decl.name}' refers to unknown action '{name}'"
                    )

        names = [p.name for p in spec.probes]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PlanConstructionError(f"Duplicate probe names: {', '.join(duplicates)}")

        executor = self._probe_executor or ClusterProbeExecutor(
            self.client, default_namespace=self._namespace(spec)
        )
        return ProbeSuite(
            [self._probe_spec(spec, decl) for decl in spec.probes],
            executor,
            concurrency=self.config.probe_concurrency,
            grace_period=self.config.probe_grace_period,
        )

    def _probe_spec(self, spec: PlanSpec, decl: ProbeDecl) -> ProbeSpec:
        return ProbeSpec(
            name=decl.name,
            kind=decl.kind,
            params=dict(decl.params),
            timeout=decl.timeout or spec.settings.probe_timeout or self.config.probe_timeout,
            requires=tuple(decl.requires),
            covers=tuple(decl.covers),
            description=decl.description,
        )
