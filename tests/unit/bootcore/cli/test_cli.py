"""Tests for the bootcore CLI commands."""

from __future__ import annotations

import json
import signal
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from bootcore.cli import main
from bootcore.cli.run import _install_signal_handlers, _restore_signal_handlers
from bootcore.errors import ClusterClientError
from bootcore.execution.cancellation import CancellationToken

A1_PLAN = Path(__file__).parents[4] / "plans" / "a1-platform.yaml"

QUIET = {"BOOTCORE_LOG_LEVEL": "error"}

SIMPLE_PLAN = """\
schema_version: "0.1.0"
plan_id: demo
actions:
  - name: prerequisites
    kind: probe
    check: {type: connectivity}
  - name: keda
    kind: install
    optional: true
    depends_on: [prerequisites]
    component: {release: keda, chart: kedacore/keda}
probes:
  - name: hpa-status
    kind: resource_count
    covers: [keda]
    params: {kind: hpa}
"""

STUCK_PLAN = """\
schema_version: "0.1.0"
plan_id: stuck
actions:
  - name: argocd
    kind: install
    component: {release: argocd, chart: argo/argo-cd, namespace: argocd}
    gate:
      target: {kind: deployment, name: argocd-server, namespace: argocd}
      poll_interval: 0.05
      timeout: 600
probes:
  - name: nodes
    kind: nodes_ready
"""


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def plan_file(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text(SIMPLE_PLAN)
    return path


@pytest.fixture
def cluster():
    """Replace the kubectl client the CLI builds with a mock."""
    with patch("bootcore.cluster.kubectl.KubectlClusterClient") as client_cls:
        client = client_cls.return_value
        client.list_resources.return_value = [{"metadata": {"name": "api"}}]
        yield client


def _run(runner, *args):
    return runner.invoke(main, ["run", *args, "--no-telemetry"], env=QUIET)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_prints_execution_order(self, runner, plan_file):
        result = runner.invoke(main, ["validate", str(plan_file)], env=QUIET)
        assert result.exit_code == 0, result.output
        assert "Plan demo is valid" in result.output
        assert "Execution order (2 actions):" in result.output
        assert "1. prerequisites [probe]" in result.output
        assert "2. keda [install]  (optional)" in result.output
        assert "- hpa-status [resource_count]" in result.output

    def test_bundled_plan(self, runner):
        result = runner.invoke(main, ["validate", str(A1_PLAN)], env=QUIET)
        assert result.exit_code == 0, result.output
        assert "Execution order (8 actions):" in result.output
        assert "gate: deployment/argocd-server, deployment/argocd-repo-server" in result.output
        assert "requires: external-secrets" in result.output

    def test_cycle_exits_1(self, runner, tmp_path):
        path = tmp_path / "cycle.yaml"
        path.write_text(
            'schema_version: "0.1.0"\nplan_id: c\nactions:\n'
            "  - {name: a, kind: probe, depends_on: [b], check: {type: connectivity}}\n"
            "  - {name: b, kind: probe, depends_on: [a], check: {type: connectivity}}\n"
        )
        result = runner.invoke(main, ["validate", str(path)], env=QUIET)
        assert result.exit_code == 1
        assert "Cyclic dependency between actions: a, b" in result.output

    def test_schema_error_exits_1(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text('schema_version: "0.1.0"\nplan_id: x\nactions:\n  - {name: a, kind: reboot}\n')
        result = runner.invoke(main, ["validate", str(path)], env=QUIET)
        assert result.exit_code == 1
        assert "Invalid plan file" in result.output

    def test_invalid_yaml_exits_1(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("actions: [unclosed\n")
        result = runner.invoke(main, ["validate", str(path)], env=QUIET)
        assert result.exit_code == 1
        assert "Invalid YAML" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["validate", str(tmp_path / "absent.yaml")])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRun:
    def test_success_json(self, runner, plan_file, cluster):
        result = _run(runner, str(plan_file), "--format", "json")
        assert result.exit_code == 0, result.output

        data = json.loads(result.stdout)
        assert data["plan_id"] == "demo"
        assert data["overall_status"] == "succeeded"
        assert [o["name"] for o in data["plan_results"]] == ["prerequisites", "keda"]
        assert data["probe_results"][0]["status"] == "pass"
        cluster.check_connectivity.assert_called_once_with()
        assert cluster.install.call_args.args[0].release == "keda"

    def test_required_failure_exits_1(self, runner, plan_file, cluster):
        cluster.check_connectivity.side_effect = ClusterClientError(
            ["kubectl", "cluster-info"], 1, "Unable to connect to the server"
        )
        result = _run(runner, str(plan_file), "--format", "json")
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["overall_status"] == "failed"
        statuses = {o["name"]: o["status"] for o in data["plan_results"]}
        assert statuses == {"prerequisites": "failed", "keda": "skipped"}
        assert data["probe_results"][0]["status"] == "skip"
        cluster.install.assert_not_called()

    def test_optional_failure_covered_by_probe_is_partial(self, runner, plan_file, cluster):
        cluster.install.side_effect = ClusterClientError(["helm"], 1, "chart not reachable")
        cluster.list_resources.return_value = []
        result = _run(runner, str(plan_file), "--format", "json")
        assert result.exit_code == 2
        assert json.loads(result.stdout)["overall_status"] == "partial"

    def test_probes_only_skips_actions(self, runner, plan_file, cluster):
        result = _run(runner, str(plan_file), "--probes-only", "--format", "json")
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["plan_results"] == []
        cluster.check_connectivity.assert_not_called()
        cluster.install.assert_not_called()

    def test_table_output(self, runner, plan_file, cluster):
        result = _run(runner, str(plan_file))
        assert result.exit_code == 0, result.output
        assert "=== bootcore run: demo ===" in result.stdout
        assert "Status: SUCCEEDED (exit 0)" in result.stdout

    def test_rejects_non_positive_timeout(self, runner, plan_file, cluster):
        result = _run(runner, str(plan_file), "--timeout", "0")
        assert result.exit_code == 2

    def test_invalid_plan_exits_1_without_running(self, runner, tmp_path, cluster):
        path = tmp_path / "bad.yaml"
        path.write_text(
            'schema_version: "0.1.0"\nplan_id: x\n'
            "probes:\n  - {name: p, kind: nodes_ready, requires: [ghost]}\n"
        )
        result = _run(runner, str(path))
        assert result.exit_code == 1
        assert "unknown action 'ghost'" in result.output
        cluster.list_resources.assert_not_called()


class TestCancellation:
    def test_deadline_during_gate_exits_130(self, runner, tmp_path, cluster):
        path = tmp_path / "stuck.yaml"
        path.write_text(STUCK_PLAN)
        cluster.get_status.return_value = {"spec": {"replicas": 1}, "status": {"availableReplicas": 0}}

        result = _run(runner, str(path), "--timeout", "0.3", "--format", "json")
        assert result.exit_code == 130, result.output

        data = json.loads(result.stdout)
        assert data["overall_status"] == "cancelled"
        assert data["plan_results"][0]["status"] == "cancelled"
        assert data["probe_results"][0]["status"] == "cancelled"
        cluster.list_resources.assert_not_called()

    def test_signal_handler_cancels_token(self):
        cancel = CancellationToken()
        original = signal.getsignal(signal.SIGINT)
        previous = _install_signal_handlers(cancel)
        try:
            assert set(previous) == {signal.SIGINT, signal.SIGTERM}
            signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
        finally:
            _restore_signal_handlers(previous)

        assert cancel.cancelled
        assert cancel.reason == "SIGTERM"
        assert signal.getsignal(signal.SIGINT) is original

    def test_handlers_not_installed_off_main_thread(self):
        installed = []
        thread = threading.Thread(target=lambda: installed.append(_install_signal_handlers(CancellationToken())))
        thread.start()
        thread.join(5)
        assert installed == [{}]


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
