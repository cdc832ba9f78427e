"""
Built-in cluster probes.

``ClusterProbeExecutor`` dispatches on ``ProbeSpec.kind`` and reads all
cluster state through a ``ClusterClient``. Every check returns
``pass``/``fail``/``skip``; a check that cannot decide whether it applies
returns ``skip``, never ``pass``.

Kinds and their ``params``:

=================  =========================================================
resource_exists    kind, name | names, namespace, min_found (default: all)
pods_running       namespace, selector, require_any (default false)
endpoints_ready    namespace, name | names
resource_count     kind, namespace, selector, min (default 1)
jsonpath_equals    kind, name, namespace, path, expected (value or list)
http_get           url, expected_status (default 200)
nodes_ready        min_ready (default 1)
=================  =========================================================

Common params:

- ``skip_unless_crd``: CRD name; the probe is ``skip`` when it is not installed.
- ``skip_if_missing``: the probe is ``skip`` (not ``fail``) when its target
  object does not exist.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Optional

import httpx
from jsonpath_ng.jsonpath import JSONPath
from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as jsonpath_parse

from bootcore.cluster.base import ClusterClient, ResourceRef
from bootcore.cluster.status import evaluate_readiness
from bootcore.errors import ClusterClientError, ProbeError, ResourceNotFoundError
from bootcore.execution.cancellation import CancellationToken
from bootcore.probes.suite import ProbeExecutor, ProbeSpec
from bootcore.report.models import ProbeResult
from bootcore.timeouts import HTTP_HEALTH_CHECK_TIMEOUT_S
from bootcore.types import ReadinessState

logger = logging.getLogger(__name__)

# Pod phases that count as healthy
_HEALTHY_PHASES = ("Running", "Succeeded")


class _Missing(Exception):
    """A probe's target object does not exist."""


@functools.lru_cache(maxsize=128)
def _compile(path: str) -> JSONPath:
    path = path.strip()
    if path.startswith("{") and path.endswith("}"):
        path = path[1:-1].strip()
    if not path.startswith("$"):
        path = "$." + path.lstrip(".")
    return jsonpath_parse(path)


def resolve_path(obj: Any, path: str) -> Any:
    """Evaluate a JSONPath expression against ``obj``.

    Accepts kubectl-style paths (``{.status.sync.status}``), plain dotted
    paths (``subsets[0].addresses``) and filters such as
    ``status.conditions[?(@.type=="Ready")].status``. Returns the single
    matched value, or a list when several nodes match. Raises ``KeyError``
    when nothing matches and ``JSONPathError`` for a malformed path.
    """
    matches = [m.value for m in _compile(path).find(obj)]
    if not matches:
        raise KeyError(path)
    return matches[0] if len(matches) == 1 else matches


class ClusterProbeExecutor(ProbeExecutor):
    """Runs the built-in probe kinds against a cluster.

    Args:
        client: Cluster client used for every lookup.
        default_namespace: Namespace for probes that do not name one.
        http_client: Optional shared ``httpx.Client`` for ``http_get``.
    """

    def __init__(
        self,
        client: ClusterClient,
        default_namespace: str = "default",
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.client = client
        self.default_namespace = default_namespace
        self._http = http_client
        self._checks: dict[str, Callable[[ProbeSpec, dict[str, Any], CancellationToken], ProbeResult]] = {
            "resource_exists": self._resource_exists,
            "pods_running": self._pods_running,
            "endpoints_ready": self._endpoints_ready,
            "resource_count": self._resource_count,
            "jsonpath_equals": self._jsonpath_equals,
            "http_get": self._http_get,
            "nodes_ready": self._nodes_ready,
        }

    @property
    def kinds(self) -> list[str]:
        return sorted(self._checks)

    def run_probe(self, spec: ProbeSpec, cancel: CancellationToken) -> ProbeResult:
        check = self._checks.get(spec.kind)
        if check is None:
            raise ProbeError(spec.name, f"unknown probe kind '{spec.kind}'")

        params = dict(spec.params)
        crd = params.get("skip_unless_crd")
        if crd and not self._exists(ResourceRef(kind="customresourcedefinition", name=crd)):
            return ProbeResult.skipped(spec.name, f"CRD {crd} not installed")

        try:
            return check(spec, params, cancel)
        except _Missing as e:
            if params.get("skip_if_missing"):
                return ProbeResult.skipped(spec.name, f"{e} not found")
            return ProbeResult.failed(spec.name, f"{e} not found")
        except KeyError as e:
            raise ProbeError(spec.name, f"missing parameter {e}") from e
        except ClusterClientError as e:
            raise ProbeError(spec.name, str(e)) from e
        except JSONPathError as e:
            raise ProbeError(spec.name, f"invalid path: {e}") from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _namespace(self, params: dict[str, Any]) -> str:
        return params.get("namespace") or self.default_namespace

    def _exists(self, ref: ResourceRef) -> bool:
        try:
            self.client.get_status(ref)
        except ResourceNotFoundError:
            return False
        return True

    def _get(self, ref: ResourceRef) -> dict[str, Any]:
        try:
            return self.client.get_status(ref)
        except ResourceNotFoundError:
            raise _Missing(str(ref))

    @staticmethod
    def _names(params: dict[str, Any]) -> list[str]:
        if "names" in params:
            return list(params["names"])
        return [params["name"]]

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _resource_exists(self, spec, params, cancel) -> ProbeResult:
        kind = params["kind"]
        namespace = params.get("namespace")
        names = self._names(params)
        min_found = int(params.get("min_found", len(names)))

        found = [
            n for n in names
            if self._exists(ResourceRef(kind=kind, name=n, namespace=namespace))
        ]
        missing = [n for n in names if n not in found]
        detail = f"{len(found)}/{len(names)} {kind} found"
        if missing:
            detail += f" (missing: {', '.join(missing)})"
        if len(found) >= min_found:
            return ProbeResult.passed(spec.name, detail)
        if params.get("skip_if_missing") and not found:
            return ProbeResult.skipped(spec.name, detail)
        return ProbeResult.failed(spec.name, detail)

    def _pods_running(self, spec, params, cancel) -> ProbeResult:
        namespace = self._namespace(params)
        pods = self.client.list_resources("pods", namespace=namespace, selector=params.get("selector"))
        if not pods:
            if params.get("require_any"):
                return ProbeResult.failed(spec.name, f"no pods in {namespace}")
            return ProbeResult.skipped(spec.name, f"no pods in {namespace}")

        unhealthy = []
        for pod in pods:
            phase = (pod.get("status") or {}).get("phase", "Unknown")
            if phase not in _HEALTHY_PHASES:
                name = (pod.get("metadata") or {}).get("name", "?")
                unhealthy.append(f"{name} ({phase})")
        if unhealthy:
            return ProbeResult.failed(
                spec.name, f"{len(unhealthy)}/{len(pods)} not running: {', '.join(unhealthy)}"
            )
        return ProbeResult.passed(spec.name, f"{len(pods)} pod(s) running")

    def _endpoints_ready(self, spec, params, cancel) -> ProbeResult:
        namespace = self._namespace(params)
        empty = []
        names = self._names(params)
        for name in names:
            if cancel.cancelled:
                break
            obj = self._get(ResourceRef(kind="endpoints", name=name, namespace=namespace))
            try:
                addresses = resolve_path(obj, "subsets[0].addresses")
            except KeyError:
                addresses = []
            if not addresses:
                empty.append(name)
        if empty:
            return ProbeResult.failed(spec.name, f"no ready addresses: {', '.join(empty)}")
        return ProbeResult.passed(spec.name, f"{len(names)} endpoint(s) ready")

    def _resource_count(self, spec, params, cancel) -> ProbeResult:
        kind = params["kind"]
        minimum = int(params.get("min", 1))
        items = self.client.list_resources(
            kind, namespace=self._namespace(params), selector=params.get("selector")
        )
        detail = f"{len(items)} {kind} (min {minimum})"
        if len(items) >= minimum:
            return ProbeResult.passed(spec.name, detail)
        return ProbeResult.failed(spec.name, detail)

    def _jsonpath_equals(self, spec, params, cancel) -> ProbeResult:
        ref = ResourceRef(kind=params["kind"], name=params["name"], namespace=params.get("namespace"))
        path = params["path"]
        expected = params["expected"]
        allowed = [str(v) for v in expected] if isinstance(expected, list) else [str(expected)]

        obj = self._get(ref)
        try:
            actual = str(resolve_path(obj, path))
        except KeyError:
            return ProbeResult.failed(spec.name, f"{ref}: {path} not set")
        if actual in allowed:
            return ProbeResult.passed(spec.name, f"{path}={actual}")
        return ProbeResult.failed(
            spec.name, f"{path}={actual}, expected {' or '.join(allowed)}"
        )

    def _http_get(self, spec, params, cancel) -> ProbeResult:
        url = params["url"]
        expected = int(params.get("expected_status", 200))
        timeout = min(spec.timeout, float(params.get("timeout", HTTP_HEALTH_CHECK_TIMEOUT_S)))
        try:
            if self._http is not None:
                response = self._http.get(url, timeout=timeout)
            else:
                with httpx.Client(timeout=timeout) as http:
                    response = http.get(url)
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            return ProbeResult.failed(spec.name, f"{url}: {type(e).__name__}")
        except httpx.RequestError as e:
            return ProbeResult.failed(spec.name, f"{url}: {e}")

        detail = f"{url} -> {response.status_code}"
        if response.status_code == expected:
            return ProbeResult.passed(spec.name, detail)
        return ProbeResult.failed(spec.name, f"{detail}, expected {expected}")

    def _nodes_ready(self, spec, params, cancel) -> ProbeResult:
        minimum = int(params.get("min_ready", 1))
        nodes = self.client.list_resources("nodes")
        ready = [
            n for n in nodes
            if evaluate_readiness("node", n).state == ReadinessState.READY
        ]
        detail = f"{len(ready)}/{len(nodes)} node(s) Ready"
        if nodes and len(ready) >= minimum:
            return ProbeResult.passed(spec.name, detail)
        return ProbeResult.failed(spec.name, detail)

