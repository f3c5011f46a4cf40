"""
OpenTelemetry instrumentation for CloudCost
Spans for tool calls and pricing update cycles, plus FastAPI/httpx auto-instrumentation
"""
import logging
import sys
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from .settings import settings

logger = logging.getLogger(__name__)


class CloudCostTracing:
    """CloudCost OpenTelemetry integration"""

    def __init__(self):
        self.provider: Optional[TracerProvider] = None
        self.initialized = False

    def init_tracing(self, app=None, exporter: Optional[SpanExporter] = None):
        """Initialize OpenTelemetry tracing and instrumentation

        ``exporter`` is attached with a synchronous processor, for callers
        that want to read spans back immediately.
        """
        if app is not None:
            FastAPIInstrumentor.instrument_app(app)
        if self.initialized:
            return

        provider = TracerProvider(resource=Resource.create({"service.name": settings.OTEL_SERVICE_NAME}))

        otlp_endpoint = settings.OTEL_EXPORTER_OTLP_ENDPOINT
        if otlp_endpoint and otlp_endpoint != "disabled":
            try:
                provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))
                logger.info(f"OTLP tracing enabled: {otlp_endpoint}")
            except Exception as e:
                logger.warning(f"Failed to initialize OTLP exporter: {e}")

        # Development console exporter; stderr keeps the stdio transport clean
        if settings.OTEL_CONSOLE_EXPORTER:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

        if exporter is not None:
            provider.add_span_processor(SimpleSpanProcessor(exporter))

        trace.set_tracer_provider(provider)
        HTTPXClientInstrumentor().instrument()

        self.provider = provider
        self.initialized = True
        logger.info("CloudCost tracing initialized")

    @property
    def tracer(self):
        if self.provider is not None:
            return self.provider.get_tracer("cloudcost")
        # No-op until init_tracing runs
        return trace.get_tracer("cloudcost")

    def trace_tool_call(self, tool: str):
        """Start the span wrapping one tool invocation"""
        return self.tracer.start_as_current_span(
            "cloudcost.tool.call",
            attributes={"cloudcost.tool": tool},
        )

    def trace_update_cycle(self, sources: int):
        return self.tracer.start_as_current_span(
            "cloudcost.pricing.update",
            attributes={"cloudcost.sources": sources},
        )


cloudcost_tracing = CloudCostTracing()

__all__ = ["cloudcost_tracing", "CloudCostTracing"]
