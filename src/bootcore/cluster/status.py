"""
Readiness interpretation of Kubernetes objects.

``evaluate_readiness`` maps the JSON of a single object (as returned by
``ClusterClient.get_status``) to a ``ReadinessCheck``. ``gate_predicate``
binds that to a client and a ``ResourceRef`` so it can be used as a
``GateSpec.predicate``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from bootcore.cluster.base import ClusterClient, ResourceRef
from bootcore.errors import ClusterClientError, ResourceNotFoundError
from bootcore.plan.action import ReadinessCheck

logger = logging.getLogger(__name__)


def _conditions(obj: dict[str, Any]) -> dict[str, dict[str, Any]]:
    conditions = (obj.get("status") or {}).get("conditions") or []
    return {c.get("type"): c for c in conditions if isinstance(c, dict)}


def _is_true(condition: Optional[dict[str, Any]]) -> bool:
    return bool(condition) and condition.get("status") == "True"


def _deployment(obj: dict[str, Any]) -> ReadinessCheck:
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    conditions = _conditions(obj)

    progressing = conditions.get("Progressing")
    if progressing and progressing.get("reason") == "ProgressDeadlineExceeded":
        return ReadinessCheck.failed(progressing.get("message") or "progress deadline exceeded")

    desired = spec.get("replicas", 1)
    available = status.get("availableReplicas", 0)
    updated = status.get("updatedReplicas", 0)
    detail = f"{available}/{desired} available"
    if _is_true(conditions.get("Available")) and available >= desired and updated >= desired:
        return ReadinessCheck.ready(detail)
    return ReadinessCheck.not_ready(detail)


def _statefulset(obj: dict[str, Any]) -> ReadinessCheck:
    desired = (obj.get("spec") or {}).get("replicas", 1)
    ready = (obj.get("status") or {}).get("readyReplicas", 0)
    detail = f"{ready}/{desired} ready"
    if ready >= desired:
        return ReadinessCheck.ready(detail)
    return ReadinessCheck.not_ready(detail)


def _daemonset(obj: dict[str, Any]) -> ReadinessCheck:
    status = obj.get("status") or {}
    desired = status.get("desiredNumberScheduled", 0)
    ready = status.get("numberReady", 0)
    detail = f"{ready}/{desired} ready"
    if desired > 0 and ready >= desired:
        return ReadinessCheck.ready(detail)
    return ReadinessCheck.not_ready(detail)


def _job(obj: dict[str, Any]) -> ReadinessCheck:
    conditions = _conditions(obj)
    failed = conditions.get("Failed")
    if _is_true(failed):
        return ReadinessCheck.failed(failed.get("message") or failed.get("reason") or "job failed")
    if _is_true(conditions.get("Complete")):
        return ReadinessCheck.ready("complete")
    active = (obj.get("status") or {}).get("active", 0)
    return ReadinessCheck.not_ready(f"{active} active")


def _node(obj: dict[str, Any]) -> ReadinessCheck:
    if _is_true(_conditions(obj).get("Ready")):
        return ReadinessCheck.ready("Ready")
    return ReadinessCheck.not_ready("NotReady")


def _namespace(obj: dict[str, Any]) -> ReadinessCheck:
    phase = (obj.get("status") or {}).get("phase", "")
    if phase == "Active":
        return ReadinessCheck.ready(phase)
    return ReadinessCheck.not_ready(phase or "unknown phase")


def _crd(obj: dict[str, Any]) -> ReadinessCheck:
    if _is_true(_conditions(obj).get("Established")):
        return ReadinessCheck.ready("Established")
    return ReadinessCheck.not_ready("not established")


def _application(obj: dict[str, Any]) -> ReadinessCheck:
    status = obj.get("status") or {}
    sync = (status.get("sync") or {}).get("status", "Unknown")
    health = (status.get("health") or {}).get("status", "Unknown")
    detail = f"sync={sync} health={health}"
    if health == "Degraded":
        return ReadinessCheck.failed(detail)
    if sync == "Synced" and health == "Healthy":
        return ReadinessCheck.ready(detail)
    return ReadinessCheck.not_ready(detail)


_INTERPRETERS: dict[str, Callable[[dict[str, Any]], ReadinessCheck]] = {
    "deployment": _deployment,
    "statefulset": _statefulset,
    "daemonset": _daemonset,
    "job": _job,
    "node": _node,
    "namespace": _namespace,
    "customresourcedefinition": _crd,
    "crd": _crd,
    "application": _application,
}

_ALIASES = {
    "deploy": "deployment",
    "deployments": "deployment",
    "sts": "statefulset",
    "statefulsets": "statefulset",
    "ds": "daemonset",
    "daemonsets": "daemonset",
    "jobs": "job",
    "nodes": "node",
    "no": "node",
    "ns": "namespace",
    "namespaces": "namespace",
    "customresourcedefinitions": "customresourcedefinition",
    "applications": "application",
    "app": "application",
    "apps": "application",
}


def normalize_kind(kind: str) -> str:
    """Lower-case a kubectl resource type and drop its API group suffix."""
    base = kind.lower().split(".", 1)[0]
    return _ALIASES.get(base, base)


def evaluate_readiness(
    kind: str,
    obj: dict[str, Any],
    condition: Optional[str] = None,
) -> ReadinessCheck:
    """Interpret one object's status.

    Args:
        kind: kubectl resource type (``deployment``, ``applications.argoproj.io``...).
        obj: The object as JSON.
        condition: When set, readiness is exactly ``status.conditions[type=condition]``
            being ``True``, whatever the kind.

    Kinds without a dedicated interpreter are ready as soon as they exist.
    """
    if condition:
        found = _conditions(obj).get(condition)
        if _is_true(found):
            return ReadinessCheck.ready(condition)
        if found is None:
            return ReadinessCheck.not_ready(f"no {condition} condition")
        return ReadinessCheck.not_ready(
            f"{condition}={found.get('status')}"
            + (f" ({found['message']})" if found.get("message") else "")
        )

    interpreter = _INTERPRETERS.get(normalize_kind(kind))
    if interpreter is None:
        return ReadinessCheck.ready("exists")
    return interpreter(obj)


def gate_predicate(
    client: ClusterClient,
    ref: ResourceRef,
    condition: Optional[str] = None,
) -> Callable[[], ReadinessCheck]:
    """Build a gate predicate polling ``ref`` through ``client``."""

    def predicate() -> ReadinessCheck:
        try:
            obj = client.get_status(ref)
        except ResourceNotFoundError:
            return ReadinessCheck.error(f"{ref} not found")
        except ClusterClientError as e:
            return ReadinessCheck.error(f"{ref}: {e.stderr.strip() or e}")
        return evaluate_readiness(ref.kind, obj, condition)

    predicate.__name__ = f"ready[{ref}]"
    return predicate
