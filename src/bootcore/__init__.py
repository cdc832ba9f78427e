"""
bootcore - Deterministic platform bootstrap and validation.

Turns a static dependency graph of platform components (each an install
or manifest apply with a readiness predicate) into an ordered, retryable
execution plan, waits for every component to become ready under bounded
timeouts, then runs an independent suite of health probes and folds all
outcomes into one report and one exit code.

Example usage:
    from bootcore import Orchestrator, PlanBuilder, PlanLoader, get_config
    from bootcore.cluster import KubectlClusterClient

    config = get_config()
    spec = PlanLoader().load(Path("plans/a1-platform.yaml"))
    built = PlanBuilder(KubectlClusterClient(config), config).build(spec)

    report = Orchestrator(config).run(built.plan, probes=built.probes)
    sys.exit(report.exit_code)
"""

__version__ = "0.1.0"
__all__ = [
    "Action",
    "DependencyPlan",
    "Orchestrator",
    "PlanBuilder",
    "PlanLoader",
    "ProbeSuite",
    "Report",
    "get_config",
    "__version__",
]


# Lazy imports to avoid loading click/pydantic/OTel at import time
def __getattr__(name: str):
    if name == "Action":
        from bootcore.plan.action import Action
        return Action
    if name == "DependencyPlan":
        from bootcore.plan.dependency import DependencyPlan
        return DependencyPlan
    if name == "Orchestrator":
        from bootcore.execution.orchestrator import Orchestrator
        return Orchestrator
    if name == "PlanBuilder":
        from bootcore.plan.builder import PlanBuilder
        return PlanBuilder
    if name == "PlanLoader":
        from bootcore.plan.loader import PlanLoader
        return PlanLoader
    if name == "ProbeSuite":
        from bootcore.probes.suite import ProbeSuite
        return ProbeSuite
    if name == "Report":
        from bootcore.report.models import Report
        return Report
    if name == "get_config":
        from bootcore.config import get_config
        return get_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
