"""
Execution events emitted by the orchestrator and readiness gates.

Every Action execution step and every gate poll produces one
``ExecutionEvent``. Events are the only externally visible side effect
of a run besides the Actions' own operations; sinks turn them into log
lines, span events, progress output, or test assertions.

Event names::

    action.started    action.attempt    action.retry    action.finished
    action.skipped    gate.poll         gate.finished   run.cancelled
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

EventSink = Callable[["ExecutionEvent"], None]


@dataclass(frozen=True)
class ExecutionEvent:
    """Structured record of one execution step."""

    event: str
    action: str
    outcome: str
    attempt: Optional[int] = None
    detail: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict for JSON emission."""
        return {
            "event": self.event,
            "action": self.action,
            "outcome": self.outcome,
            "attempt": self.attempt,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBus:
    """Fans events out to registered sinks.

    A sink that raises is logged and skipped; it never aborts the run.
    """

    def __init__(self, sinks: Iterable[EventSink] = ()) -> None:
        self._sinks: list[EventSink] = list(sinks)

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(
        self,
        event: str,
        action: str,
        outcome: str,
        attempt: Optional[int] = None,
        detail: str = "",
    ) -> ExecutionEvent:
        record = ExecutionEvent(
            event=event,
            action=action,
            outcome=outcome,
            attempt=attempt,
            detail=detail,
        )
        for sink in self._sinks:
            try:
                sink(record)
            except Exception as e:
                logger.warning("Event sink %r failed on %s: %s", sink, event, e)
        return record


class EventRecorder:
    """In-memory sink; handy for debugging and tests."""

    def __init__(self) -> None:
        self.events: list[ExecutionEvent] = []

    def __call__(self, event: ExecutionEvent) -> None:
        self.events.append(event)

    def named(self, name: str, action: Optional[str] = None) -> list[ExecutionEvent]:
        return [
            e for e in self.events
            if e.event == name and (action is None or e.action == action)
        ]
