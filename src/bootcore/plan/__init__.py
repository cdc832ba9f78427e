"""
Plan declarations: Actions, the dependency graph and the plan file format.

Public API::

    from bootcore.plan import (
        # Runtime definitions
        Action,
        ActionContext,
        GateSpec,
        ReadinessCheck,
        RetryPolicy,
        DependencyPlan,
        # Plan files
        PlanSpec,
        PlanLoader,
        PlanBuilder,
    )

``PlanBuilder`` is imported lazily; it pulls in the cluster and probe
layers.
"""

from bootcore.plan.action import (
    Action,
    ActionContext,
    GateSpec,
    ReadinessCheck,
    RetryPolicy,
)
from bootcore.plan.dependency import DependencyPlan
from bootcore.plan.loader import PlanLoader
from bootcore.plan.schema import PlanSpec

__all__ = [
    # Runtime definitions
    "Action",
    "ActionContext",
    "GateSpec",
    "ReadinessCheck",
    "RetryPolicy",
    "DependencyPlan",
    # Plan files
    "PlanSpec",
    "PlanLoader",
    "PlanBuilder",
    "BuiltPlan",
]


def __getattr__(name: str):
    if name in ("PlanBuilder", "BuiltPlan"):
        from bootcore.plan import builder
        return getattr(builder, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
