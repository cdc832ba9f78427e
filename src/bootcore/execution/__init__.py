"""
Plan execution: orchestrator, readiness gates, cancellation and events.

Public API::

    from bootcore.execution import (
        Orchestrator,
        ReadinessGate,
        GateResult,
        CancellationToken,
        ExecutionEvent,
        EventBus,
        EventRecorder,
    )
"""

__all__ = [
    "Orchestrator",
    "ReadinessGate",
    "GateResult",
    "CancellationToken",
    "ExecutionEvent",
    "EventBus",
    "EventRecorder",
]

_LOCATIONS = {
    "Orchestrator": "bootcore.execution.orchestrator",
    "ReadinessGate": "bootcore.execution.gate",
    "GateResult": "bootcore.execution.gate",
    "CancellationToken": "bootcore.execution.cancellation",
    "ExecutionEvent": "bootcore.execution.events",
    "EventBus": "bootcore.execution.events",
    "EventRecorder": "bootcore.execution.events",
}


# Lazy imports: the probe suite imports the cancellation token from here
def __getattr__(name: str):
    module = _LOCATIONS.get(name)
    if module is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib

    return getattr(importlib.import_module(module), name)
