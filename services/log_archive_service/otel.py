import os
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

# The global provider can only be set once per process
_provider = None

def init_tracing(app, service_name: str, service_version: str = "v1", use_cloud_trace: bool = False):
    global _provider
    if _provider is None:
        resource = Resource.create({
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "local"),
        })
        provider = TracerProvider(resource=resource)
        if use_cloud_trace:
            # pip: opentelemetry-exporter-gcp-trace
            from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter
            provider.add_span_processor(BatchSpanProcessor(CloudTraceSpanExporter()))
        elif os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true":
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        _provider = provider

    # Auto-instrument the FastAPI app (server spans per request)
    FastAPIInstrumentor().instrument_app(app)

    return trace.get_tracer(service_name)
