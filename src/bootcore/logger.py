"""
Structured logging for orchestrator runs.

Outputs JSON-formatted execution events for Loki ingestion. Every
Action start/attempt/finish, retry backoff and readiness poll becomes
one JSON line on the ``bootcore.events`` logger; regular module loggers
keep using ``logging.getLogger(__name__)``.

Usage:
    from bootcore.logger import RunEventLogger, configure_logging

    configure_logging("info", "text")
    events = RunEventLogger(plan_id="a1-platform")
    events(event)  # usable directly as an orchestrator event sink
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from bootcore.execution.events import ExecutionEvent

# Configure structured logger for Loki
_event_logger = logging.getLogger("bootcore.events")
_event_logger.setLevel(logging.INFO)
_event_logger.propagate = False

# Default handler outputs JSON to stderr so stdout stays free for reports
if not _event_logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    _event_logger.addHandler(handler)


class JsonFormatter(logging.Formatter):
    """Render regular log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "info", fmt: str = "text") -> None:
    """Configure the root ``bootcore`` logger from config values."""
    root = logging.getLogger("bootcore")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s", "%H:%M:%S")
        )
    root.addHandler(handler)

    # Quieter execution events unless debugging
    _event_logger.setLevel(logging.DEBUG if level == "debug" else logging.INFO)


class RunEventLogger:
    """
    Structured logger for execution events.

    Each log entry includes standard fields for filtering:
    - plan_id, action, event type
    - outcome, attempt and event-specific detail
    """

    def __init__(
        self,
        plan_id: str,
        service_name: str = "bootcore",
        extra_labels: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize run event logger.

        Args:
            plan_id: Plan identifier (used as Loki label)
            service_name: Service name for log attribution
            extra_labels: Additional labels for Loki filtering
        """
        self.plan_id = plan_id
        self.service_name = service_name
        self.extra_labels = extra_labels or {}
        self._logger = _event_logger

    def __call__(self, event: "ExecutionEvent") -> None:
        self.log_event(event)

    def log_event(self, event: "ExecutionEvent") -> None:
        """Emit one execution event as a JSON line."""
        entry = {
            "timestamp": event.timestamp.isoformat(),
            "service": self.service_name,
            "plan_id": self.plan_id,
            "event": event.event,
            "action": event.action,
            "outcome": event.outcome,
        }
        if event.attempt is not None:
            entry["attempt"] = event.attempt
        if event.detail:
            entry["detail"] = event.detail
        if self.extra_labels:
            entry["labels"] = self.extra_labels

        log_line = json.dumps(entry, default=str)

        if event.outcome in ("failed", "timeout", "error"):
            self._logger.warning(log_line)
        elif event.event == "gate.poll":
            # One line per poll is noisy; keep it for debug runs
            self._logger.debug(log_line)
        else:
            self._logger.info(log_line)
