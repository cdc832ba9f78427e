"""
kubectl/helm backed cluster client.

Every call is a subprocess with captured output and a timeout; failures
raise ``ClusterClientError`` carrying the command, exit code and stderr.

Usage::

    from bootcore.cluster import KubectlClusterClient

    client = KubectlClusterClient(config)
    client.install(ComponentSpec(release="argocd", chart="argo/argo-cd", namespace="argocd"), timeout=600)
    client.get_status(ResourceRef(kind="deployment", name="argocd-server", namespace="argocd"))
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Optional

from bootcore.cluster.base import ClusterClient, ComponentSpec, ManifestSpec, ResourceRef
from bootcore.config import BootcoreConfig
from bootcore.errors import ClusterClientError, ResourceNotFoundError
from bootcore.timeouts import HELM_TIMEOUT_MARGIN_S, SUBPROCESS_DEFAULT_TIMEOUT_S

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


class KubectlClusterClient(ClusterClient):
    """Cluster client shelling out to kubectl and helm.

    Args:
        config: Supplies binary paths, kubeconfig and context.
        runner: ``subprocess.run`` compatible callable (injectable for tests).
        base_dir: Relative manifest/values paths are resolved against it.
    """

    def __init__(
        self,
        config: BootcoreConfig,
        runner: Runner = subprocess.run,
        base_dir: Optional[Path] = None,
    ) -> None:
        self.config = config
        self._runner = runner
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()

    # ------------------------------------------------------------------
    # Subprocess plumbing
    # ------------------------------------------------------------------

    def _kubectl(self, args: list[str]) -> list[str]:
        return [self.config.kubectl_path, *self.config.kubectl_base_args(), *args]

    def _helm(self, args: list[str]) -> list[str]:
        cmd = [self.config.helm_path, *args]
        if self.config.kubeconfig:
            cmd += ["--kubeconfig", self.config.kubeconfig]
        if self.config.kube_context:
            cmd += ["--kube-context", self.config.kube_context]
        return cmd

    def _run(
        self,
        cmd: list[str],
        context: str,
        timeout: float = SUBPROCESS_DEFAULT_TIMEOUT_S,
    ) -> str:
        """Run a command and return stdout; raise ``ClusterClientError`` on failure."""
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise ClusterClientError(
                cmd, stderr=f"timed out after {timeout:g}s", context=context
            )
        except FileNotFoundError:
            raise ClusterClientError(
                cmd, stderr=f"{cmd[0]} not found in PATH", context=context
            )

        if result.returncode != 0:
            stderr = result.stderr or ""
            # Only API server lookups; a missing context or kubeconfig is a client error
            if "(NotFound)" in stderr:
                raise ResourceNotFoundError(
                    cmd, returncode=result.returncode, stderr=stderr, context=context
                )
            raise ClusterClientError(
                cmd, returncode=result.returncode, stderr=stderr, context=context
            )
        return result.stdout

    def _resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.base_dir / p

    # ------------------------------------------------------------------
    # ClusterClient
    # ------------------------------------------------------------------

    def install(self, component: ComponentSpec, timeout: float) -> None:
        namespace = component.namespace or self.config.default_namespace
        args = [
            "upgrade", "--install", component.release, component.chart,
            "--namespace", namespace,
            "--timeout", f"{int(timeout)}s",
        ]
        if component.create_namespace:
            args.append("--create-namespace")
        if component.repo:
            args += ["--repo", component.repo]
        if component.version:
            args += ["--version", component.version]
        for values_file in component.values_files:
            args += ["-f", str(self._resolve(values_file))]
        for key, value in sorted(component.set_values.items()):
            args += ["--set", f"{key}={value}"]

        self._run(
            self._helm(args),
            context=f"Installing {component.release}",
            timeout=timeout + HELM_TIMEOUT_MARGIN_S,
        )
        logger.info("Installed %s (%s) in %s", component.release, component.chart, namespace)

    def apply_manifest(self, manifest: ManifestSpec, timeout: float) -> None:
        path = self._resolve(manifest.path)
        if not path.exists():
            if manifest.required:
                raise ClusterClientError(
                    ["kubectl", "apply", str(path)],
                    stderr=f"manifest not found: {path}",
                    context="Applying manifest",
                )
            logger.warning("Manifest %s not found, nothing applied", path)
            return

        args = ["apply", "-k" if manifest.kustomize else "-f", str(path)]
        if manifest.namespace:
            args += ["-n", manifest.namespace]
        if manifest.server_side:
            args.append("--server-side")

        self._run(self._kubectl(args), context=f"Applying {manifest.path}", timeout=timeout)
        logger.info("Applied %s", manifest.path)

    def get_status(self, ref: ResourceRef) -> dict[str, Any]:
        args = ["get", ref.kind, ref.name, "-o", "json"]
        if ref.namespace:
            args += ["-n", ref.namespace]
        stdout = self._run(self._kubectl(args), context=f"Reading {ref}")
        return _parse_json(stdout, str(ref))

    def list_resources(
        self,
        kind: str,
        namespace: Optional[str] = None,
        selector: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        args = ["get", kind, "-o", "json"]
        if namespace:
            args += ["-n", namespace]
        if selector:
            args += ["-l", selector]
        stdout = self._run(self._kubectl(args), context=f"Listing {kind}")
        return list(_parse_json(stdout, kind).get("items", []))

    def check_connectivity(self) -> None:
        if not shutil.which(self.config.kubectl_path):
            raise ClusterClientError(
                [self.config.kubectl_path],
                stderr="kubectl not found. Install kubectl or set BOOTCORE_KUBECTL_PATH.",
                context="Checking prerequisites",
            )
        self._run(self._kubectl(["cluster-info"]), context="Checking cluster access")


def _parse_json(stdout: str, what: str) -> dict[str, Any]:
    try:
        data = json.loads(stdout or "{}")
    except json.JSONDecodeError as e:
        raise ClusterClientError(["kubectl", "get", what], stderr=f"invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ClusterClientError(["kubectl", "get", what], stderr="expected a JSON object")
    return data
