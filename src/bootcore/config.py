"""
Centralized configuration for bootcore.

Settings are read from BOOTCORE_* variables and validated by
pydantic-settings. The object is frozen: it is built once,
passed into plan construction and threaded through every Action via
``ActionContext`` instead of being read from process-wide variables.

Later sources lose to earlier ones: constructor arguments, then
BOOTCORE_* environment variables, then a .env file, then defaults.

Example:
    from bootcore.config import get_config

    config = get_config()
    print(config.kubectl_path)  # From BOOTCORE_KUBECTL_PATH or default

    # Override at runtime
    config = get_config(probe_concurrency=8)
"""

from __future__ import annotations

import os
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bootcore.timeouts import (
    DEFAULT_ACTION_TIMEOUT_S,
    DEFAULT_GATE_TIMEOUT_S,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_PROBE_CONCURRENCY,
    DEFAULT_PROBE_GRACE_PERIOD_S,
    DEFAULT_PROBE_TIMEOUT_S,
)


class BootcoreConfig(BaseSettings):
    """
    Immutable settings shared by plan construction, the orchestrator
    and the CLI. Every field maps to a BOOTCORE_<FIELD> variable.

    Example:
        export BOOTCORE_KUBE_CONTEXT=a1
        export BOOTCORE_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="BOOTCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Service identification
    service_name: str = Field(
        default="bootcore",
        description="Service name for telemetry attribution",
    )

    # Cluster tooling
    kubectl_path: str = Field(
        default="kubectl",
        description="kubectl binary used by the cluster client",
    )
    helm_path: str = Field(
        default="helm",
        description="helm binary used for component installs",
    )
    kubeconfig: Optional[str] = Field(
        default=None,
        description="Path to kubeconfig file (kubectl default if not set)",
    )
    kube_context: Optional[str] = Field(
        default=None,
        description="kubeconfig context to target",
    )
    default_namespace: str = Field(
        default="default",
        description="Namespace used when an action or probe does not name one",
    )

    # Execution defaults
    default_action_timeout: float = Field(
        default=DEFAULT_ACTION_TIMEOUT_S,
        gt=0,
        description="Timeout for an action operation when the plan omits one",
    )
    default_poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL_S,
        gt=0,
        description="Readiness poll interval when the plan omits one",
    )
    default_gate_timeout: float = Field(
        default=DEFAULT_GATE_TIMEOUT_S,
        gt=0,
        description="Readiness timeout when the plan omits one",
    )

    # Probes
    probe_concurrency: int = Field(
        default=DEFAULT_PROBE_CONCURRENCY,
        ge=1,
        description="Maximum number of probes running at once",
    )
    probe_timeout: float = Field(
        default=DEFAULT_PROBE_TIMEOUT_S,
        gt=0,
        description="Timeout for a probe when the plan omits one",
    )
    probe_grace_period: float = Field(
        default=DEFAULT_PROBE_GRACE_PERIOD_S,
        ge=0,
        description="Time in-flight probes get to finish after cancellation",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for bootcore",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for Loki, text for console)",
    )

    # OTLP export
    otlp_endpoint: str = Field(
        default="localhost:4317",
        description="OTLP gRPC endpoint for trace export",
    )
    emit_telemetry: bool = Field(
        default=True,
        description="Export run traces over OTLP",
    )

    @field_validator("kubeconfig")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Resolve ~ and $VARS in the kubeconfig path."""
        if v is None:
            return v
        return os.path.expanduser(os.path.expandvars(v))

    @field_validator("otlp_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Strip an http(s):// scheme; the gRPC exporter expects host:port."""
        if v.startswith("http://"):
            v = v[7:]
        elif v.startswith("https://"):
            v = v[8:]
        return v

    def kubectl_base_args(self) -> list[str]:
        """Global kubectl/helm flags selecting the target cluster."""
        args: list[str] = []
        if self.kubeconfig:
            args += ["--kubeconfig", self.kubeconfig]
        if self.kube_context:
            args += ["--context", self.kube_context]
        return args


# Global singleton
_config: Optional[BootcoreConfig] = None


def get_config(**overrides) -> BootcoreConfig:
    """
    Return the process-wide configuration.

    The first call builds it; later calls reuse it. Passing overrides
    always builds (and caches) a fresh instance with those values.
    """
    global _config

    if overrides or _config is None:
        _config = BootcoreConfig(**overrides)

    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() rebuilds it."""
    global _config
    _config = None
