"""
Cluster client capability.

Example:
    from bootcore.cluster import KubectlClusterClient, ResourceRef, gate_predicate

    client = KubectlClusterClient(config)
    ready = gate_predicate(client, ResourceRef(kind="deployment", name="argocd-server", namespace="argocd"))
"""

from bootcore.cluster.base import ClusterClient, ComponentSpec, ManifestSpec, ResourceRef
from bootcore.cluster.kubectl import KubectlClusterClient
from bootcore.cluster.status import evaluate_readiness, gate_predicate, normalize_kind

__all__ = [
    "ClusterClient",
    "ComponentSpec",
    "ManifestSpec",
    "ResourceRef",
    "KubectlClusterClient",
    "evaluate_readiness",
    "gate_predicate",
    "normalize_kind",
]
