"""Tests for plan YAML models and the plan loader."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from bootcore.plan.loader import PlanLoader
from bootcore.plan.schema import ActionDecl, GateDecl, PlanSpec, ProbeDecl
from bootcore.types import ActionKind

A1_PLAN = Path(__file__).parents[4] / "plans" / "a1-platform.yaml"

MINIMAL_PLAN = """
schema_version: "0.1.0"
plan_id: demo
actions:
  - name: prerequisites
    kind: probe
    check: {type: connectivity}
  - name: argocd
    kind: install
    depends_on: [prerequisites]
    component: {release: argocd, chart: argo/argo-cd}
    gate:
      target: {kind: deployment, name: argocd-server}
probes:
  - name: pods
    kind: pods_running
"""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class TestActionDecl:
    def test_install_needs_component(self):
        with pytest.raises(ValidationError, match="needs 'component'"):
            ActionDecl(name="a", kind=ActionKind.INSTALL)

    def test_payload_must_match_kind(self):
        with pytest.raises(ValidationError, match="must not set 'manifest'"):
            ActionDecl(
                name="a",
                kind="install",
                component={"release": "a", "chart": "b"},
                manifest={"path": "x.yaml"},
            )

    def test_probe_action_cannot_have_gate(self):
        with pytest.raises(ValidationError, match="cannot have a gate"):
            ActionDecl(
                name="p",
                kind="probe",
                check={"type": "connectivity"},
                gate={"target": {"kind": "deployment", "name": "x"}},
            )

    def test_resource_ready_check_needs_target(self):
        with pytest.raises(ValidationError, match="need a 'target'"):
            ActionDecl(name="p", kind="probe", check={"type": "resource_ready"})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            ActionDecl(name="a", kind="probe", check={}, retries=3)

    def test_defaults(self):
        decl = ActionDecl(name="m", kind="apply_manifest", manifest={"path": "x.yaml"})
        assert decl.depends_on == []
        assert decl.optional is False
        assert decl.idempotent is True
        assert decl.manifest.required is True


class TestGateDecl:
    def test_needs_a_target(self):
        with pytest.raises(ValidationError, match="'target' or 'targets'"):
            GateDecl()

    def test_all_targets(self):
        gate = GateDecl(
            target={"kind": "deployment", "name": "a"},
            targets=[{"kind": "statefulset", "name": "b"}],
        )
        assert [t.name for t in gate.all_targets] == ["a", "b"]

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            GateDecl(target={"kind": "deployment", "name": "a"}, timeout=0)


class TestPlanSpec:
    def test_requires_identity(self):
        with pytest.raises(ValidationError):
            PlanSpec.model_validate({"actions": []})

    def test_probe_defaults(self):
        probe = ProbeDecl(name="p", kind="nodes_ready")
        assert probe.params == {}
        assert probe.requires == []
        assert probe.timeout is None


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class TestPlanLoader:
    def test_load_from_string(self):
        spec = PlanLoader().load_from_string(MINIMAL_PLAN)
        assert spec.plan_id == "demo"
        assert [a.name for a in spec.actions] == ["prerequisites", "argocd"]
        assert spec.actions[1].gate.target.name == "argocd-server"
        assert spec.probes[0].kind == "pods_running"

    def test_load_caches_by_path(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text(MINIMAL_PLAN)
        loader = PlanLoader()
        first = loader.load(path)

        path.write_text(MINIMAL_PLAN.replace("plan_id: demo", "plan_id: changed"))
        assert loader.load(path) is first

        PlanLoader.clear_cache()
        assert loader.load(path).plan_id == "changed"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Plan file not found"):
            PlanLoader().load(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text("actions: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            PlanLoader().load(path)

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "plan.yaml"
        path.write_text('schema_version: "0.1.0"\nplan_id: x\nactions:\n  - name: a\n    kind: reboot\n')
        with pytest.raises(ValidationError):
            PlanLoader().load(path)

    def test_bundled_plan_is_valid(self):
        spec = PlanLoader().load(A1_PLAN)
        assert spec.plan_id == "a1-platform"
        assert spec.settings.namespace == "a1-orchestrator"
        optional = {a.name for a in spec.actions if a.optional}
        assert optional == {"keda", "kube-prometheus-stack"}
        assert len(spec.probes) == 10
