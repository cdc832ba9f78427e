"""
OTLP trace export setup for CLI runs.

``configure_tracing`` installs a global ``TracerProvider`` with a batch
OTLP/gRPC exporter; ``run_span`` wraps a whole run so the span events
emitted by ``bootcore.execution.otel`` land on it; ``flush_tracing``
exports whatever is buffered before the process exits.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, Optional

from bootcore.timeouts import OTEL_FLUSH_TIMEOUT_MS

logger = logging.getLogger(__name__)


def configure_tracing(endpoint: str, service_name: str = "bootcore") -> bool:
    """
    Configure the global tracer provider with an OTLP exporter.

    Args:
        endpoint: OTLP gRPC endpoint (e.g., localhost:4317)
        service_name: ``service.name`` resource attribute

    Returns:
        True if configuration succeeded, False otherwise
    """
    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        resource = Resource.create({
            "service.name": service_name,
            "service.namespace": "bootcore",
        })
        tracer_provider = TracerProvider(resource=resource)
        span_exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True)
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
        trace.set_tracer_provider(tracer_provider)
        return True

    except Exception as e:
        logger.warning("Failed to configure OTel export to %s: %s", endpoint, e)
        return False


def flush_tracing() -> None:
    """Flush and shut down the tracer provider."""
    try:
        from opentelemetry import trace
    except ImportError:  # pragma: no cover
        return

    tracer_provider = trace.get_tracer_provider()
    try:
        if hasattr(tracer_provider, "force_flush"):
            tracer_provider.force_flush(timeout_millis=OTEL_FLUSH_TIMEOUT_MS)
        if hasattr(tracer_provider, "shutdown"):
            tracer_provider.shutdown()
    except Exception as e:
        logger.debug("OTel flush failed: %s", e)


@contextlib.contextmanager
def run_span(plan_id: str, attributes: Optional[dict] = None) -> Iterator[None]:
    """Open the ``bootcore.run`` span for the duration of a run."""
    try:
        from opentelemetry import trace
    except ImportError:  # pragma: no cover
        yield
        return

    tracer = trace.get_tracer("bootcore")
    attrs = {"bootcore.plan_id": plan_id}
    attrs.update(attributes or {})
    with tracer.start_as_current_span("bootcore.run", attributes=attrs):
        yield
