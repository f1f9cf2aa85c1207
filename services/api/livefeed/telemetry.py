"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics for auth, post mutations and the broadcast hub

Tracing is configured by the app factory when `tracing_enabled` is set.
"""
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter, Gauge

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
POST_MUTATIONS_TOTAL = Counter(
    "post_mutations_total",
    "Committed post mutations",
    ["action"],  # 'create' | 'update' | 'delete'
)

SIGNUPS_TOTAL = Counter(
    "signups_total",
    "Number of accounts created",
)

LOGINS_TOTAL = Counter(
    "logins_total",
    "Login attempts by outcome",
    ["outcome"],  # 'success' | 'unknown_user' | 'bad_password'
)

EVENTS_BROADCAST_TOTAL = Counter(
    "events_broadcast_total",
    "Mutation events published through the broadcast hub",
    ["action"],
)

BROADCAST_OBSERVERS = Gauge(
    "broadcast_observers",
    "Observers currently connected to the broadcast hub",
)

IMAGE_UPLOADS_TOTAL = Counter(
    "image_uploads_total",
    "Image upload attempts by outcome",
    ["outcome"],  # 'stored' | 'rejected' | 'empty'
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
def setup_tracing(service_name: str, environment: str, endpoint: str) -> None:
    """Configure the global OTel TracerProvider with OTLP/Jaeger export."""
    resource = Resource.create(
        {
            "service.name": service_name,
            "deployment.environment": environment,
        }
    )

    provider = TracerProvider(resource=resource)

    try:
        otlp_exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
        logger.info("OTel tracing configured → %s", endpoint)
    except Exception as exc:
        logger.warning("Could not connect to OTLP exporter: %s — traces disabled", exc)

    trace.set_tracer_provider(provider)
    SQLAlchemyInstrumentor().instrument()


def instrument_app(app) -> None:  # noqa: ANN001
    """Call after app is created to add FastAPI request spans."""
    FastAPIInstrumentor.instrument_app(app)
