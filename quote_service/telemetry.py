"""OpenTelemetry setup for the quote service.

Spans go to OTLP when an endpoint is configured, to the console at DEBUG,
and nowhere otherwise. The provider is flushed on application shutdown.
"""

from __future__ import annotations

import logging

from opentelemetry import trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from quote_service.config import ServiceConfig, config

logger = logging.getLogger(__name__)

SERVICE_VERSION = "0.1.0"

_provider: TracerProvider | None = None
_tracer: trace.Tracer | None = None


def build_resource(cfg: ServiceConfig = config) -> Resource:
    return Resource.create(
        {
            "service.name": cfg.service_name,
            "service.version": SERVICE_VERSION,
            "quote.aroflo_configured": cfg.aroflo_configured,
        }
    )


def _exporter(cfg: ServiceConfig) -> SpanExporter | None:
    if cfg.otel_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError:
            logger.warning("OTLP exporter unavailable, spans for %s go to the console", cfg.service_name)
            return ConsoleSpanExporter()
        return OTLPSpanExporter(endpoint=cfg.otel_endpoint)
    if cfg.log_level.upper() == "DEBUG":
        return ConsoleSpanExporter()
    return None


def init_telemetry(cfg: ServiceConfig = config) -> trace.Tracer:
    """Install the tracer provider once; later calls return the same tracer."""
    global _provider, _tracer
    if _tracer is not None:
        return _tracer

    provider = TracerProvider(resource=build_resource(cfg))
    exporter = _exporter(cfg)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info(
        "Tracing %s as %s (exporter=%s)",
        SERVICE_VERSION,
        cfg.service_name,
        type(exporter).__name__ if exporter else "none",
    )

    trace.set_tracer_provider(provider)
    set_global_textmap(CompositePropagator([TraceContextTextMapPropagator()]))

    _provider = provider
    _tracer = trace.get_tracer(cfg.service_name, SERVICE_VERSION)
    return _tracer


def get_tracer() -> trace.Tracer:
    if _tracer is None:
        return init_telemetry()
    return _tracer


def shutdown_telemetry() -> None:
    """Flush pending spans; safe to call when tracing never started."""
    global _provider
    if _provider is None:
        return
    _provider.shutdown()
    _provider = None
