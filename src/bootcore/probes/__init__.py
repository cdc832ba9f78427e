"""
Post-convergence health probes.

Example:
    from bootcore.probes import ClusterProbeExecutor, ProbeSpec, ProbeSuite

    suite = ProbeSuite(
        [ProbeSpec(name="nodes", kind="nodes_ready")],
        ClusterProbeExecutor(client),
    )
"""

from bootcore.probes.builtin import ClusterProbeExecutor, resolve_path
from bootcore.probes.suite import (
    FunctionProbeExecutor,
    ProbeExecutor,
    ProbeSpec,
    ProbeSuite,
)

__all__ = [
    "ClusterProbeExecutor",
    "FunctionProbeExecutor",
    "ProbeExecutor",
    "ProbeSpec",
    "ProbeSuite",
    "resolve_path",
]
