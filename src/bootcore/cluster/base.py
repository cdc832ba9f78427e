"""
Cluster client capability.

The orchestrator never talks to the cluster directly. Installs,
manifest applies, readiness lookups and probe queries all go through a
``ClusterClient``; how a client reaches the cluster (kubectl/helm
subprocesses, the API, a fake in tests) is its own business.

All client methods raise ``ClusterClientError`` (or
``ResourceNotFoundError``) on failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


class ComponentSpec(BaseModel):
    """A Helm-packaged platform component."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    release: str = Field(..., min_length=1, description="Helm release name")
    chart: str = Field(..., min_length=1, description="Chart reference (repo/chart or OCI URL)")
    namespace: Optional[str] = Field(None, description="Target namespace")
    repo: Optional[str] = Field(None, description="Chart repository URL")
    version: Optional[str] = Field(None, description="Chart version")
    values_files: tuple[str, ...] = Field((), description="Helm values files")
    set_values: dict[str, str] = Field(default_factory=dict, description="--set overrides")
    create_namespace: bool = True


class ManifestSpec(BaseModel):
    """A manifest file or kustomization applied with kubectl."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(..., min_length=1, description="File, directory or kustomization")
    namespace: Optional[str] = None
    kustomize: bool = False
    server_side: bool = False
    required: bool = Field(
        True, description="Fail when the path is missing (otherwise a no-op)"
    )


class ResourceRef(BaseModel):
    """Points at a single cluster object."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: str = Field(..., min_length=1, description="kubectl resource type, e.g. deployment")
    name: str = Field(..., min_length=1)
    namespace: Optional[str] = None

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.name} -n {self.namespace}"
        return f"{self.kind}/{self.name}"


# ---------------------------------------------------------------------------
# Client interface
# ---------------------------------------------------------------------------


class ClusterClient(ABC):
    """Abstract cluster capability backing Actions, gates and probes."""

    @abstractmethod
    def install(self, component: ComponentSpec, timeout: float) -> None:
        """Install or upgrade a component. Must be idempotent."""

    @abstractmethod
    def apply_manifest(self, manifest: ManifestSpec, timeout: float) -> None:
        """Apply a manifest. Must be idempotent."""

    @abstractmethod
    def get_status(self, ref: ResourceRef) -> dict[str, Any]:
        """Return the object as a dict; raise ``ResourceNotFoundError`` if absent."""

    @abstractmethod
    def list_resources(
        self,
        kind: str,
        namespace: Optional[str] = None,
        selector: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Return all objects of ``kind`` (optionally filtered)."""

    @abstractmethod
    def check_connectivity(self) -> None:
        """Raise ``ClusterClientError`` if the cluster is unreachable."""
