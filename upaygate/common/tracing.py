"""OpenTelemetry wiring for the gateway app and its upstream calls."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from upaygate.common.config import GatewaySettings


def build_tracer_provider(cfg: GatewaySettings) -> TracerProvider:
    """Provider tagged with the gateway's identity; exports only when an OTLP endpoint is set."""

    resource = Resource.create(
        {
            "service.name": cfg.service_name,
            "upay.merchant_id": cfg.upay_mch_id,
            "upay.api": cfg.upay_api,
        }
    )
    provider = TracerProvider(resource=resource)
    if cfg.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=cfg.otel_exporter_otlp_endpoint)))
    return provider


def setup_tracing(cfg: GatewaySettings) -> None:
    trace.set_tracer_provider(build_tracer_provider(cfg))


def instrument_app(app: FastAPI) -> None:
    """Attach FastAPI auto-instrumentation; health and metrics scrapes are not traced."""

    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)
