"""OpenTelemetry SDK setup for distributed tracing and metrics."""

from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import start_http_server

from .config import settings
from .logger import get_logger

logger = get_logger(__name__)

SERVICE_NAME = "ticketflow"
SERVICE_VERSION = "0.1.0"


def _resource() -> Resource:
    return Resource.create(
        {
            "service.name": SERVICE_NAME,
            "service.version": SERVICE_VERSION,
            "deployment.environment": settings.environment,
        }
    )


def setup_tracing() -> None:
    """
    Configure OpenTelemetry distributed tracing.

    Sets up:
    - TracerProvider with service name
    - OTLP/HTTP exporter for trace data
    - BatchSpanProcessor for efficient batching
    """
    if not settings.enable_tracing:
        logger.info("Tracing is disabled")
        return

    try:
        tracer_provider = TracerProvider(resource=_resource())

        span_processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint))
        tracer_provider.add_span_processor(span_processor)

        trace.set_tracer_provider(tracer_provider)

        logger.info(f"Tracing configured with OTLP exporter at {settings.otlp_endpoint}")

    except Exception as e:
        logger.error(f"Failed to setup tracing: {e}")
        # Don't fail application if tracing setup fails
        logger.warning("Application will continue without tracing")


def setup_metrics() -> None:
    """
    Configure OpenTelemetry metrics with Prometheus.

    Sets up:
    - MeterProvider with service name
    - PrometheusMetricReader for Prometheus scraping
    - HTTP server for metrics endpoint
    """
    if not settings.enable_metrics:
        logger.info("Metrics export is disabled")
        return

    try:
        prometheus_reader = PrometheusMetricReader()

        meter_provider = MeterProvider(
            resource=_resource(),
            metric_readers=[prometheus_reader],
        )
        metrics.set_meter_provider(meter_provider)

        start_http_server(port=settings.prometheus_port, addr="0.0.0.0")
        logger.info(f"Prometheus metrics available at http://0.0.0.0:{settings.prometheus_port}/metrics")

    except Exception as e:
        logger.error(f"Failed to setup metrics: {e}")
        # Don't fail application if metrics setup fails
        logger.warning("Application will continue without metrics")


def get_tracer(name: str) -> trace.Tracer:
    """
    Get a tracer instance for the given name.

    Args:
        name: Name of the tracer (typically module name)

    Returns:
        Tracer instance
    """
    return trace.get_tracer(name)


def get_meter(name: str) -> metrics.Meter:
    return metrics.get_meter(name)


class TracingContext:
    """Context manager for creating tracing spans."""

    def __init__(
        self,
        tracer: trace.Tracer,
        span_name: str,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize tracing context.

        Args:
            tracer: Tracer instance
            span_name: Name of the span
            attributes: Optional span attributes
        """
        self.tracer = tracer
        self.span_name = span_name
        self.attributes = attributes or {}
        self.span: trace.Span | None = None

    def __enter__(self) -> trace.Span:
        """Start span."""
        self.span = self.tracer.start_span(self.span_name)

        for key, value in self.attributes.items():
            if value is not None:
                self.span.set_attribute(key, value)

        return self.span

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """End span."""
        if self.span:
            # Record exception if occurred
            if exc_type is not None:
                self.span.record_exception(exc_val)
                self.span.set_status(
                    trace.Status(
                        status_code=trace.StatusCode.ERROR,
                        description=str(exc_val),
                    )
                )
            else:
                self.span.set_status(trace.Status(status_code=trace.StatusCode.OK))

            self.span.end()


def create_span(
    tracer: trace.Tracer,
    span_name: str,
    attributes: dict[str, Any] | None = None,
) -> TracingContext:
    """
    Create a tracing span context manager.

    Example:
        tracer = get_tracer(__name__)
        with create_span(tracer, "claim_ticket", {"ticket_id": "T-1"}):
            ...
    """
    return TracingContext(tracer, span_name, attributes)


# Metric instruments for common operations
_transition_counter: metrics.Counter | None = None
_transition_latency: metrics.Histogram | None = None
_audit_failure_counter: metrics.Counter | None = None
_sync_pending_counter: metrics.Counter | None = None


def setup_common_metrics() -> None:
    """Setup common metric instruments used across the application."""
    global _transition_counter, _transition_latency, _audit_failure_counter, _sync_pending_counter

    meter = get_meter(SERVICE_NAME)

    _transition_counter = meter.create_counter(
        name="ticketflow.transitions.total",
        description="Workflow transitions by type and outcome",
        unit="1",
    )

    _transition_latency = meter.create_histogram(
        name="ticketflow.transition.latency",
        description="Workflow transition latency",
        unit="ms",
    )

    _audit_failure_counter = meter.create_counter(
        name="ticketflow.audit.write_failures",
        description="Workflow log entries that could not be written",
        unit="1",
    )

    _sync_pending_counter = meter.create_counter(
        name="ticketflow.notifications.queued",
        description="Ticket-service notifications queued for reconciliation",
        unit="1",
    )

    logger.info("Common metrics instruments created")


def record_transition_metric(transition: str, outcome: str, latency_ms: float) -> None:
    """Record one transition attempt."""
    if _transition_counter:
        _transition_counter.add(1, {"transition": transition, "outcome": outcome})

    if _transition_latency:
        _transition_latency.record(latency_ms, {"transition": transition, "outcome": outcome})


def record_audit_failure(action: str) -> None:
    if _audit_failure_counter:
        _audit_failure_counter.add(1, {"action": action})


def record_notification_queued(kind: str, count: int = 1) -> None:
    if _sync_pending_counter:
        _sync_pending_counter.add(count, {"kind": kind})


def initialize_observability() -> None:
    """
    Initialize complete observability stack.

    Should be called once at application startup.
    """
    logger.info("Initializing observability...")

    setup_tracing()
    setup_metrics()
    setup_common_metrics()

    logger.info("Observability initialized successfully")
