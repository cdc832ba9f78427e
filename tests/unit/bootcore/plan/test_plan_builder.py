"""Tests for building runtime plans from plan files."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bootcore.cluster.base import ResourceRef
from bootcore.errors import ActionExecutionError, CyclicDependencyError, PlanConstructionError
from bootcore.execution.cancellation import CancellationToken
from bootcore.plan.action import ActionContext, ReadinessCheck
from bootcore.plan.builder import PlanBuilder, combine_checks
from bootcore.plan.loader import PlanLoader
from bootcore.probes.builtin import ClusterProbeExecutor
from bootcore.types import ActionKind, ReadinessState

A1_PLAN = Path(__file__).parents[4] / "plans" / "a1-platform.yaml"

READY_DEPLOYMENT = {
    "spec": {"replicas": 1},
    "status": {
        "availableReplicas": 1,
        "updatedReplicas": 1,
        "conditions": [{"type": "Available", "status": "True"}],
    },
}


def _spec(body: str):
    return PlanLoader().load_from_string('schema_version: "0.1.0"\nplan_id: demo\n' + body)


def _ctx(config, timeout=60.0):
    return ActionContext(action="x", config=config, timeout=timeout, attempt=1, cancel=CancellationToken())


class TestCombineChecks:
    def test_all_ready(self):
        check = combine_checks([ReadinessCheck.ready("1/1 available"), ReadinessCheck.ready("2/2 available")])
        assert check.state == ReadinessState.READY
        assert check.detail == "1/1 available; 2/2 available"

    def test_worst_state_wins(self):
        check = combine_checks([
            ReadinessCheck.ready("a"),
            ReadinessCheck.not_ready("b"),
            ReadinessCheck.error("c"),
        ])
        assert check.state == ReadinessState.ERROR
        assert check.detail == "b; c"

    def test_failed_beats_error(self):
        check = combine_checks([ReadinessCheck.error("e"), ReadinessCheck.failed("f")])
        assert check.state == ReadinessState.FAILED

    def test_empty(self):
        assert combine_checks([]).state == ReadinessState.NOT_READY


class TestActions:
    def test_install_binds_client_and_namespace(self, mock_cluster, config):
        spec = _spec(
            "settings: {namespace: platform, action_timeout: 300}\n"
            "actions:\n"
            "  - name: keda\n"
            "    kind: install\n"
            "    component: {release: keda, chart: kedacore/keda}\n"
        )
        built = PlanBuilder(mock_cluster, config).build(spec)
        action = built.plan["keda"]
        assert action.kind == ActionKind.INSTALL
        assert action.timeout == 300

        action.operation(_ctx(config, timeout=300))
        component = mock_cluster.install.call_args.args[0]
        assert component.namespace == "platform"
        assert mock_cluster.install.call_args.kwargs["timeout"] == 300

    def test_apply_manifest(self, mock_cluster, config):
        spec = _spec(
            "actions:\n"
            "  - name: policies\n"
            "    kind: apply_manifest\n"
            "    timeout: 45\n"
            "    manifest: {path: policies.yaml}\n"
        )
        action = PlanBuilder(mock_cluster, config).build(spec).plan["policies"]
        action.operation(_ctx(config, timeout=45))
        manifest = mock_cluster.apply_manifest.call_args.args[0]
        assert manifest.path == "policies.yaml"
        assert action.timeout == 45

    def test_timeout_falls_back_to_config(self, mock_cluster, config):
        spec = _spec("actions:\n  - {name: p, kind: probe, check: {type: connectivity}}\n")
        action = PlanBuilder(mock_cluster, config).build(spec).plan["p"]
        assert action.timeout == config.default_action_timeout
        assert action.retry is None

    def test_retry_policy(self, mock_cluster, config):
        spec = _spec(
            "actions:\n"
            "  - name: p\n"
            "    kind: probe\n"
            "    check: {type: connectivity}\n"
            "    retry: {max_attempts: 4, backoff_initial: 2, backoff_max: 10}\n"
        )
        retry = PlanBuilder(mock_cluster, config).build(spec).plan["p"].retry
        assert retry.max_attempts == 4
        assert [retry.delay(n) for n in (1, 2, 3)] == [2, 4, 8]
        assert retry.delay(4) == 10

    def test_connectivity_check(self, mock_cluster, config):
        spec = _spec("actions:\n  - {name: p, kind: probe, check: {type: connectivity}}\n")
        PlanBuilder(mock_cluster, config).build(spec).plan["p"].operation(_ctx(config))
        mock_cluster.check_connectivity.assert_called_once_with()

    def test_resource_ready_check_raises_when_not_ready(self, mock_cluster, config):
        spec = _spec(
            "actions:\n"
            "  - name: crds\n"
            "    kind: probe\n"
            "    check:\n"
            "      type: resource_ready\n"
            "      target: {kind: deployment, name: controller, namespace: ops}\n"
        )
        mock_cluster.get_status.return_value = {"spec": {"replicas": 1}, "status": {}}
        action = PlanBuilder(mock_cluster, config).build(spec).plan["crds"]
        with pytest.raises(ActionExecutionError, match="not_ready"):
            action.operation(_ctx(config))

        mock_cluster.get_status.return_value = READY_DEPLOYMENT
        action.operation(_ctx(config))
        mock_cluster.get_status.assert_called_with(
            ResourceRef(kind="deployment", name="controller", namespace="ops")
        )


class TestGates:
    PLAN = (
        "settings: {namespace: argocd, poll_interval: 2}\n"
        "actions:\n"
        "  - name: argocd\n"
        "    kind: install\n"
        "    component: {release: argocd, chart: argo/argo-cd}\n"
        "    gate:\n"
        "      timeout: 120\n"
        "      targets:\n"
        "        - {kind: deployment, name: argocd-server}\n"
        "        - {kind: deployment, name: argocd-repo-server}\n"
    )

    def test_gate_settings(self, mock_cluster, config):
        gate = PlanBuilder(mock_cluster, config).build(_spec(self.PLAN)).plan["argocd"].gate
        assert gate.poll_interval == 2
        assert gate.timeout == 120
        assert gate.description == "deployment/argocd-server, deployment/argocd-repo-server"

    def test_gate_ready_only_when_every_target_ready(self, mock_cluster, config):
        objects = {"argocd-server": READY_DEPLOYMENT, "argocd-repo-server": {"spec": {"replicas": 1}}}
        mock_cluster.get_status.side_effect = lambda ref: objects[ref.name]
        gate = PlanBuilder(mock_cluster, config).build(_spec(self.PLAN)).plan["argocd"].gate

        assert gate.predicate().state == ReadinessState.NOT_READY
        objects["argocd-repo-server"] = READY_DEPLOYMENT
        assert gate.predicate().state == ReadinessState.READY
        namespaces = {c.args[0].namespace for c in mock_cluster.get_status.call_args_list}
        assert namespaces == {"argocd"}


class TestProbes:
    def test_probe_specs(self, mock_cluster, config):
        spec = _spec(
            "settings: {probe_timeout: 15}\n"
            "actions:\n"
            "  - {name: keda, kind: install, optional: true, component: {release: keda, chart: keda}}\n"
            "probes:\n"
            "  - {name: hpa, kind: resource_count, covers: [keda], params: {kind: hpa}}\n"
            "  - {name: nodes, kind: nodes_ready, timeout: 5}\n"
        )
        probes = PlanBuilder(mock_cluster, config).build(spec).probes
        by_name = {p.name: p for p in probes.probes}
        assert by_name["hpa"].timeout == 15
        assert by_name["hpa"].covers == ("keda",)
        assert by_name["nodes"].timeout == 5
        assert isinstance(probes.executor, ClusterProbeExecutor)
        assert probes.concurrency == config.probe_concurrency

    def test_custom_executor(self, mock_cluster, config):
        executor = MagicMock()
        spec = _spec("probes:\n  - {name: p, kind: custom}\n")
        assert PlanBuilder(mock_cluster, config, probe_executor=executor).build(spec).probes.executor is executor

    @pytest.mark.parametrize("field", ["requires", "covers"])
    def test_unknown_action_reference(self, mock_cluster, config, field):
        spec = _spec(f"probes:\n  - {{name: p, kind: nodes_ready, {field}: [ghost]}}\n")
        with pytest.raises(PlanConstructionError, match="unknown action 'ghost'"):
            PlanBuilder(mock_cluster, config).build(spec)

    def test_duplicate_probe_names(self, mock_cluster, config):
        spec = _spec("probes:\n  - {name: p, kind: nodes_ready}\n  - {name: p, kind: pods_running}\n")
        with pytest.raises(PlanConstructionError, match="Duplicate probe names: p"):
            PlanBuilder(mock_cluster, config).build(spec)


class TestGraphErrors:
    def test_cycle(self, mock_cluster, config):
        spec = _spec(
            "actions:\n"
            "  - {name: a, kind: probe, depends_on: [b], check: {type: connectivity}}\n"
            "  - {name: b, kind: probe, depends_on: [a], check: {type: connectivity}}\n"
        )
        with pytest.raises(CyclicDependencyError):
            PlanBuilder(mock_cluster, config).build(spec)


def test_bundled_plan_builds(mock_cluster, config):
    built = PlanBuilder(mock_cluster, config).build(PlanLoader().load(A1_PLAN))
    assert built.plan.execution_order == [
        "prerequisites",
        "argocd",
        "gatekeeper",
        "external-secrets",
        "keda",
        "kube-prometheus-stack",
        "gatekeeper-constraints",
        "root-app",
    ]
    assert built.plan["kube-prometheus-stack"].timeout == 900
    assert built.plan["argocd"].gate.timeout == 600
    assert len(built.probes) == 10
